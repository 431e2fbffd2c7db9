"""Core rendering and ledger logic.

This module exports the main building blocks:
- DiffParser: Turns unified diff text into a line-indexed FileDiff
- MarkdownDiffRenderer: Renders Markdown with diff and comment annotations
- Comment ledger functions: Read, merge and write COMMENTS-DATA blocks
- apply_element_edit: Maps edits on rendered elements back to source lines
"""

from markdown_diff_preview.core.blocks import BlockKind, ClassifiedLine, classify_line
from markdown_diff_preview.core.comment_ledger import (
    CommentLedgerError,
    CommentNotFoundError,
    InvalidCommentFieldError,
    LedgerNotFoundError,
    MarkerMap,
    add_comments,
    extract_marker_map,
    merge_ledger,
    parse_ledger,
    serialize_ledger,
    strip_markers,
    update_comment,
    write_ledger,
)
from markdown_diff_preview.core.diff_parser import (
    DiffParser,
    build_file_diff,
    empty_file_diff,
    extract_new_file_content,
    new_file_diff,
    parse_diff,
    split_file_diffs,
)
from markdown_diff_preview.core.inline import InlineTokenizer, escape_html, render_inline
from markdown_diff_preview.core.page import render_page
from markdown_diff_preview.core.renderer import MarkdownDiffRenderer, render_markdown
from markdown_diff_preview.core.source_editor import apply_element_edit, edit_document_line

__all__ = [
    "BlockKind",
    "ClassifiedLine",
    "CommentLedgerError",
    "CommentNotFoundError",
    "DiffParser",
    "InlineTokenizer",
    "InvalidCommentFieldError",
    "LedgerNotFoundError",
    "MarkdownDiffRenderer",
    "MarkerMap",
    "add_comments",
    "apply_element_edit",
    "build_file_diff",
    "classify_line",
    "edit_document_line",
    "empty_file_diff",
    "escape_html",
    "extract_marker_map",
    "extract_new_file_content",
    "merge_ledger",
    "new_file_diff",
    "parse_diff",
    "parse_ledger",
    "render_inline",
    "render_markdown",
    "render_page",
    "serialize_ledger",
    "split_file_diffs",
    "strip_markers",
    "update_comment",
    "write_ledger",
]
