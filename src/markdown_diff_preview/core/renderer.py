"""Diff-aware Markdown to HTML renderer.

This module implements the MarkdownDiffRenderer class which walks a
document line by line and emits HTML with:
- ``data-line`` attributes mapping elements back to source lines
- Decorations for added lines and blocks of removed content
- Comment badges anchored by ``<!--comment:N-->`` markers
- One hidden thread panel per rendered comment

Block structure comes from ``classify_line``; the scanner state decides
whether a line continues an open list, table or code block.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from markdown_diff_preview.config.schema import RenderConfig
from markdown_diff_preview.core.blocks import (
    CODE_FENCE,
    BlockKind,
    ClassifiedLine,
    classify_line,
    is_table_row,
    is_table_separator,
    parse_table_cells,
)
from markdown_diff_preview.core.comment_ledger import (
    LEDGER_HEADER,
    LEDGER_PATTERN,
    MARKER_PATTERN,
    extract_marker_map,
    parse_ledger,
    status_class,
)
from markdown_diff_preview.core.inline import escape_html, render_inline
from markdown_diff_preview.utils.logging import LogEventNames

if TYPE_CHECKING:
    from markdown_diff_preview.models.comments import Comment, CommentsData
    from markdown_diff_preview.models.diff import FileDiff

log = structlog.get_logger()

LEADING_MARKERS = re.compile(r"^\s*(?:<!--comment:\d+-->\s*)+")
HTML_TAG = re.compile(r"<[^>]*>")

AUTHOR_LABELS = {"user": "You", "ai": "AI"}

# Removed lines with no text of their own inside a list
SKIPPED_IN_LISTS = (BlockKind.BLANK, BlockKind.CODE_FENCE, BlockKind.HORIZONTAL_RULE)


class ScanState(Enum):
    """What the scanner is in the middle of."""

    DEFAULT = "default"
    CODE_BLOCK = "code_block"
    LIST = "list"
    TABLE = "table"
    LEDGER = "ledger"


@dataclass
class _ListItem:
    indent: int
    tag: str
    line_number: int
    html: str
    removed: str | None


def _find_in_text(fragment: str, needle: str) -> int:
    """Index of ``needle`` in the text of an HTML fragment, skipping tags."""
    start = 0
    for tag in HTML_TAG.finditer(fragment):
        index = fragment.find(needle, start, tag.start())
        if index != -1:
            return index
        start = tag.end()
    return fragment.find(needle, start)


def _ledger_ranges(markdown: str) -> dict[int, int]:
    """First and last line of every COMMENTS-DATA block that starts its own line."""
    ranges: dict[int, int] = {}
    for match in LEDGER_PATTERN.finditer(markdown):
        line_start = markdown.rfind("\n", 0, match.start()) + 1
        if markdown[line_start : match.start()].strip():
            continue
        first = markdown.count("\n", 0, match.start()) + 1
        ranges[first] = markdown.count("\n", 0, match.end()) + 1
    return ranges


def _drop_ledger_text(content: str) -> str:
    """Removed text without any earlier COMMENTS-DATA block, closed or cut short."""
    lines = LEDGER_PATTERN.sub("", content).split("\n")
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped.startswith("<!--"):
            continue
        following = lines[index + 1].strip() if index + 1 < len(lines) else ""
        if LEDGER_HEADER in stripped or following.startswith(LEDGER_HEADER):
            lines = lines[:index]
            break
    return "\n".join(lines)


class _RenderPass:
    """Mutable state for rendering one document."""

    def __init__(
        self,
        markdown: str,
        file_diff: FileDiff | None,
        show_line_numbers: bool,
        comments: CommentsData | None,
        config: RenderConfig,
    ) -> None:
        self.lines = markdown.split("\n")
        self.added = file_diff.added_lines if file_diff is not None else frozenset()
        self.removed = dict(file_diff.removed_lines) if file_diff is not None else {}
        self.show_line_numbers = show_line_numbers
        self.comments = comments or {}
        self.config = config
        self.markers = extract_marker_map(markdown)
        self.ledger_ranges = _ledger_ranges(markdown)

        self.state = ScanState.DEFAULT
        self.out: list[str] = []
        self.ledger_end = 0
        self.code_start = 0
        self.code_language = ""
        self.code_badges = ""
        self.code_removed: str | None = None
        self.code_lines: list[tuple[str, int]] = []
        self.list_items: list[_ListItem] = []
        self.table_rows: list[tuple[str, int]] = []
        self.carried_removed: list[str] = []
        self.processed: set[int] = set()
        self.unmatched: set[int] = set()
        self.threads: list[Comment] = []

    def run(self) -> str:
        for index, line in enumerate(self.lines):
            self._step(line, index + 1)
        self._finish()

        html = "\n".join(part for part in self.out if part)
        if not html.strip():
            placeholder = escape_html(self.config.empty_state_text)
            return f'<div class="empty-state"><p>{placeholder}</p></div>'
        return html

    # --- Scanner ----------------------------------------------------------

    def _step(self, line: str, line_number: int) -> None:
        if self.state is ScanState.LEDGER:
            if line_number >= self.ledger_end:
                self.state = ScanState.DEFAULT
            return

        if self.state is ScanState.CODE_BLOCK:
            if line.startswith(CODE_FENCE):
                self._close_code_block(line_number)
            else:
                self.code_lines.append((line, line_number))
            return

        if line_number in self.ledger_ranges:
            self._flush_list()
            self._flush_table()
            # Deleted prose before the ledger still shows; the old ledger does not
            removed = self.removed.pop(line_number, None)
            if removed is not None:
                kept = _drop_ledger_text(removed)
                if kept.strip():
                    self.carried_removed.append(kept)
            self.ledger_end = self.ledger_ranges[line_number]
            if self.ledger_end > line_number:
                self.state = ScanState.LEDGER
            return

        if line_number in self.markers.marker_lines:
            self._carry(line_number)
            return

        leading = LEADING_MARKERS.match(line)
        if leading and line[leading.end() :].strip():
            line = line[leading.end() :]

        classified = classify_line(line)

        if classified.kind is BlockKind.TABLE_ROW:
            if self.state is not ScanState.TABLE:
                self._flush_list()
                self.state = ScanState.TABLE
            self.table_rows.append((line, line_number))
            return

        self._flush_table()

        if classified.is_list_item:
            self._add_list_item(classified, line_number)
            return

        self._flush_list()

        if classified.kind is BlockKind.CODE_FENCE:
            self._open_code_block(classified, line_number)
        elif classified.kind is BlockKind.BLANK:
            self._emit_removed(self._take_removed(line_number))
        else:
            self._emit_line_block(classified, line_number)

    def _finish(self) -> None:
        if self.state is ScanState.CODE_BLOCK:
            self._close_code_block(None)
        self._flush_list()
        self._flush_table()

        # Deletions after the last line of the document
        trailing = [self.removed.pop(key) for key in sorted(self.removed) if key > len(self.lines)]
        self._emit_removed("\n".join([*self.carried_removed, *trailing]) or None)
        self.carried_removed = []

        if self.threads:
            threads = "\n".join(self._render_thread(comment) for comment in self.threads)
            self.out.append(f'<div class="comment-threads-container">\n{threads}\n</div>')

    # --- Removed content ----------------------------------------------------

    def _carry(self, line_number: int) -> None:
        """Defer removed content keyed at a skipped line to the next rendered line."""
        if line_number in self.removed:
            self.carried_removed.append(self.removed.pop(line_number))

    def _take_removed(self, line_number: int) -> str | None:
        parts = list(self.carried_removed)
        self.carried_removed = []
        if line_number in self.removed:
            parts.append(self.removed.pop(line_number))
        return "\n".join(parts) if parts else None

    def _emit_removed(self, content: str | None) -> None:
        if content is not None and content.strip():
            self.out.append(self._removed_block(content))

    @staticmethod
    def _removed_inline(text: str) -> str:
        return render_inline(MARKER_PATTERN.sub("", text).strip(), wrap_plain_text=False)

    @staticmethod
    def _removed_code(code: list[str]) -> str:
        body = "\n".join(code)
        return f'<pre class="removed-content"><code>{body}</code></pre>'

    def _removed_block(self, content: str) -> str:
        """Render removed text with its own block structure, struck through."""
        parts: list[str] = []
        items: list[str] = []
        list_tag = "ul"
        code: list[str] | None = None

        def flush_items() -> None:
            if items:
                joined = "".join(items)
                parts.append(f'<{list_tag} class="removed-content-list">{joined}</{list_tag}>')
                items.clear()

        for line in content.split("\n"):
            if code is not None:
                if line.startswith(CODE_FENCE):
                    parts.append(self._removed_code(code))
                    code = None
                else:
                    code.append(escape_html(line))
                continue

            classified = classify_line(line)
            text = self._removed_inline(classified.text)
            if classified.is_list_item:
                if not items:
                    list_tag = classified.list_tag
                items.append(f'<li class="removed-content">{text}</li>')
                continue
            flush_items()

            kind = classified.kind
            if kind is BlockKind.CODE_FENCE:
                code = []
            elif kind is BlockKind.HEADER:
                level = classified.level
                parts.append(f'<h{level} class="removed-content">{text}</h{level}>')
            elif kind is BlockKind.HORIZONTAL_RULE:
                parts.append('<hr class="removed-content" />')
            elif kind is BlockKind.BLOCKQUOTE:
                parts.append(f'<blockquote class="removed-content"><p>{text}</p></blockquote>')
            elif kind is BlockKind.TABLE_ROW:
                if not is_table_separator(line):
                    cells = " | ".join(
                        self._removed_inline(cell) for cell in parse_table_cells(line)
                    )
                    parts.append(f'<p class="removed-content">{cells}</p>')
            elif kind is BlockKind.PARAGRAPH:
                parts.append(f'<p class="removed-content">{text}</p>')

        if code is not None:
            parts.append(self._removed_code(code))
        flush_items()

        return (
            '<div class="diff-removed-block"><span class="diff-removed-label">removed</span>'
            f"{''.join(parts)}</div>"
        )

    def _removed_list_items(self, content: str) -> str:
        items = []
        for line in content.split("\n"):
            classified = classify_line(line)
            if classified.kind in SKIPPED_IN_LISTS:
                continue
            text = classified.text or line.strip()
            items.append(f'<li class="diff-line removed">{self._removed_inline(text)}</li>')
        return "".join(items)

    def _removed_rows(self, content: str, column_count: int) -> str:
        """Removed table rows keep their cells; any other text spans the table."""
        rows = []
        for line in content.split("\n"):
            if not line.strip() or is_table_separator(line):
                continue
            if is_table_row(line):
                tds = "".join(
                    f"<td>{self._removed_inline(cell)}</td>" for cell in parse_table_cells(line)
                )
            else:
                text = self._removed_inline(line)
                tds = f'<td colspan="{column_count}">{text}</td>'
            rows.append(f'<tr class="diff-row-removed">{tds}</tr>')
        return "".join(rows)

    # --- Comments -----------------------------------------------------------

    def _is_block_target(self, comment_id: int) -> bool:
        comment = self.comments.get(str(comment_id))
        return comment is not None and comment.target.type == "block"

    def _claim(self, ids: list[int]) -> list[Comment]:
        """Mark comments as rendered; each id is claimed at most once per document."""
        claimed: list[Comment] = []
        for comment_id in ids:
            if comment_id in self.processed:
                continue
            comment = self.comments.get(str(comment_id))
            if comment is None:
                if comment_id not in self.unmatched:
                    self.unmatched.add(comment_id)
                    log.warning(LogEventNames.COMMENT_MARKER_UNMATCHED, comment_id=comment_id)
                continue
            self.processed.add(comment_id)
            self.threads.append(comment)
            claimed.append(comment)
        return claimed

    @staticmethod
    def _badge(comment: Comment) -> str:
        return (
            f'<span class="comment-badge comment-status-{comment.status}" '
            f'data-comment-id="{comment.id}">[{comment.id}]</span>'
        )

    def _block_badges(self, line_number: int) -> str:
        """Badges for comments on a whole element, shown before it."""
        ids = list(self.markers.block.get(line_number, []))
        ids.extend(i for i in self.markers.inline.get(line_number, []) if self._is_block_target(i))
        comments = self._claim(ids)
        if not comments:
            return ""
        badges = "".join(self._badge(comment) for comment in comments)
        return f'<span class="comment-highlight-block {status_class(comments)}">{badges}</span>'

    def _inline_fragments(self, texts: list[str], line_number: int) -> list[str]:
        """Render the inline parts of a line and attach its inline comments.

        A badge goes right after the first occurrence of the comment's target
        text. When no part contains it the badge goes at the end of the line.
        """
        wrap = self.config.wrap_plain_text
        fragments = [
            render_inline(MARKER_PATTERN.sub("", text).strip(), wrap) for text in texts
        ] or [""]

        ids = [i for i in self.markers.inline.get(line_number, []) if not self._is_block_target(i)]
        attached: dict[int, list[Comment]] = {}

        for comment in self._claim(ids):
            index, position = self._locate(fragments, comment, line_number)
            badge = " " + self._badge(comment)
            if position is None:
                fragments[index] += badge
            else:
                fragments[index] = fragments[index][:position] + badge + fragments[index][position:]
            attached.setdefault(index, []).append(comment)

        for index, group in attached.items():
            highlight = status_class(group)
            fragments[index] = (
                f'<span class="comment-highlight {highlight}">{fragments[index]}</span>'
            )

        return fragments

    def _locate(
        self, fragments: list[str], comment: Comment, line_number: int
    ) -> tuple[int, int | None]:
        text = comment.target.text
        if text:
            needle = escape_html(text)
            for index, fragment in enumerate(fragments):
                found = _find_in_text(fragment, needle)
                if found != -1:
                    return index, found + len(needle)
            log.debug(
                LogEventNames.COMMENT_ANCHOR_FALLBACK, comment_id=comment.id, line=line_number
            )
        return len(fragments) - 1, None

    def _render_thread(self, comment: Comment) -> str:
        items = []
        for item in comment.thread:
            timestamp = item.parsed_timestamp.strftime(self.config.timestamp_format)
            items.append(
                f'<div class="comment-thread-item comment-author-{item.author}" '
                f'data-item-id="{escape_html(item.id)}">'
                '<div class="comment-thread-header">'
                f'<span class="comment-author">{AUTHOR_LABELS[item.author]}</span>'
                f'<span class="comment-timestamp">{escape_html(timestamp)}</span>'
                "</div>"
                f'<div class="comment-thread-content">{escape_html(item.content.strip())}</div>'
                "</div>"
            )
        if not items:
            items.append('<div class="comment-thread-item comment-thread-empty">No messages</div>')

        sections = [
            '<div class="comment-thread-header-bar">'
            f'<span class="comment-thread-title">Comment {comment.id}</span>'
            f'<button class="comment-close-btn" data-comment-id="{comment.id}" '
            'aria-label="Close">&times;</button></div>',
            f'<div class="comment-thread-items">{"".join(items)}</div>',
        ]
        if comment.plan is not None:
            plan = comment.plan
            sections.append(
                self._editable_section(
                    comment.id, "plan", "Plan", plan.content, plan.status, plan.editable
                )
            )
        if comment.response is not None:
            response = comment.response
            sections.append(
                self._editable_section(
                    comment.id,
                    "response",
                    "Response",
                    response.content,
                    response.status,
                    response.editable,
                )
            )

        return (
            f'<div class="comment-thread" id="comment-thread-{comment.id}" '
            f'data-comment-id="{comment.id}" hidden>'
            f"{''.join(sections)}</div>"
        )

    @staticmethod
    def _editable_section(
        comment_id: int, field: str, title: str, content: str, status: str, editable: bool
    ) -> str:
        data = f'data-comment-id="{comment_id}" data-type="{field}"'
        if editable:
            body_attrs = f'class="comment-editable" contenteditable="true" {data}'
        else:
            body_attrs = f'class="comment-readonly" {data}'
        return (
            f'<div class="comment-{field}">'
            f'<h4 class="comment-section-title">{title}</h4>'
            f"<div {body_attrs}>{escape_html(content.strip())}</div>"
            f'<span class="comment-status-label status-{status}">{status}</span>'
            "</div>"
        )

    # --- Blocks -------------------------------------------------------------

    def _line_number(self, line_number: int) -> str:
        if not self.show_line_numbers:
            return ""
        return f'<span class="line-number">{line_number}</span>'

    def _decorate(self, html: str, line_number: int) -> str:
        """Wrap an added element in the added-line decoration."""
        if line_number not in self.added:
            return html
        number = self._line_number(line_number)
        return (
            f'<div class="diff-line added clickable" data-line="{line_number}">'
            f"{number}{html}</div>"
        )

    def _emit_line_block(self, classified: ClassifiedLine, line_number: int) -> None:
        self._emit_removed(self._take_removed(line_number))
        badges = self._block_badges(line_number)
        attr = f' data-line="{line_number}"'

        if classified.kind is BlockKind.HORIZONTAL_RULE:
            element = f"<hr{attr} />"
        else:
            inner = self._inline_fragments([classified.text], line_number)[0]
            if classified.kind is BlockKind.HEADER:
                element = f"<h{classified.level}{attr}>{inner}</h{classified.level}>"
            elif classified.kind is BlockKind.BLOCKQUOTE:
                element = f"<blockquote{attr}><p>{inner}</p></blockquote>"
            else:
                element = f"<p{attr}>{inner}</p>"

        self.out.append(self._decorate(badges + element, line_number))

    def _open_code_block(self, classified: ClassifiedLine, line_number: int) -> None:
        self.state = ScanState.CODE_BLOCK
        self.code_start = line_number
        self.code_language = classified.language
        self.code_removed = self._take_removed(line_number)
        self.code_badges = self._block_badges(line_number)
        self.code_lines = []

    def _close_code_block(self, closing_line: int | None) -> None:
        rows: list[str] = []
        for text, line_number in self.code_lines:
            rows.extend(self._removed_code_lines(self._take_removed(line_number)))
            added = ' class="diff-line added"' if line_number in self.added else ""
            rows.append(f'<span{added} data-line="{line_number}">{escape_html(text)}</span>')
        if closing_line is not None:
            rows.extend(self._removed_code_lines(self._take_removed(closing_line)))

        language = ""
        if self.code_language:
            language = f' class="language-{escape_html(self.code_language)}"'
        code = "\n".join(rows)
        if closing_line is not None:
            code += f'<span data-line="{closing_line}"></span>'
        element = f'<pre data-line="{self.code_start}"><code{language}>{code}</code></pre>'

        self._emit_removed(self.code_removed)
        self.out.append(self._decorate(self.code_badges + element, self.code_start))

        self.state = ScanState.DEFAULT
        self.code_lines = []
        self.code_removed = None
        self.code_badges = ""

    @staticmethod
    def _removed_code_lines(content: str | None) -> list[str]:
        if content is None:
            return []
        return [
            f'<span class="diff-line removed">{escape_html(line)}</span>'
            for line in content.split("\n")
            if not line.startswith(CODE_FENCE)
        ]

    def _add_list_item(self, classified: ClassifiedLine, line_number: int) -> None:
        self.state = ScanState.LIST
        removed = self._take_removed(line_number)
        badges = self._block_badges(line_number)
        inner = self._inline_fragments([classified.text], line_number)[0]
        self.list_items.append(
            _ListItem(classified.indent, classified.list_tag, line_number, badges + inner, removed)
        )

    def _list_item_html(self, item: _ListItem) -> str:
        parts = [self._removed_list_items(item.removed)] if item.removed else []
        if item.line_number in self.added:
            number = self._line_number(item.line_number)
            parts.append(
                f'<li class="diff-line added" data-line="{item.line_number}">{number}{item.html}'
            )
        else:
            parts.append(f'<li data-line="{item.line_number}">{item.html}')
        return "".join(parts)

    def _flush_list(self) -> None:
        """Close the open list, nesting items by indentation."""
        if not self.list_items:
            if self.state is ScanState.LIST:
                self.state = ScanState.DEFAULT
            return

        parts: list[str] = []
        stack: list[tuple[int, str]] = []

        for item in self.list_items:
            while stack and item.indent < stack[-1][0]:
                _, tag = stack.pop()
                parts.append(f"</li></{tag}>")
            if not stack or item.indent > stack[-1][0]:
                first = f' data-line="{item.line_number}"' if not stack else ""
                parts.append(f"<{item.tag}{first}>")
                stack.append((item.indent, item.tag))
            else:
                parts.append("</li>")
            parts.append(self._list_item_html(item))

        while stack:
            _, tag = stack.pop()
            parts.append(f"</li></{tag}>")

        self.out.append("".join(parts))
        self.list_items = []
        self.state = ScanState.DEFAULT

    def _flush_table(self) -> None:
        if not self.table_rows:
            if self.state is ScanState.TABLE:
                self.state = ScanState.DEFAULT
            return

        rows = self.table_rows
        start = rows[0][1]
        has_header = len(rows) > 1 and is_table_separator(rows[1][0])
        all_added = all(line_number in self.added for _, line_number in rows)
        column_count = max(
            [len(parse_table_cells(line)) for line, _ in rows if not is_table_separator(line)],
            default=1,
        )

        badges: list[str] = []
        body: list[str] = []

        for index, (line, line_number) in enumerate(rows):
            if has_header and index == 1:
                # The separator line opens the body
                body.append(f'</thead><tbody data-line="{line_number}">')
            removed = self._take_removed(line_number)
            if removed:
                body.append(self._removed_rows(removed, max(column_count, 1)))
            if is_table_separator(line):
                continue

            badges.append(self._block_badges(line_number))
            cells = self._inline_fragments(parse_table_cells(line), line_number)
            tag = "th" if has_header and index == 0 else "td"
            row_added = line_number in self.added and not all_added
            row_class = ' class="diff-row-added"' if row_added else ""
            tds = "".join(f"<{tag}>{cell}</{tag}>" for cell in cells)
            body.append(f'<tr data-line="{line_number}"{row_class}>{tds}</tr>')

        content = "".join(body)
        if has_header:
            content = f"<thead>{content}</tbody>"
        table = f'<table data-line="{start}">{content}</table>'
        prefix = "".join(badges)

        if all_added:
            number = self._line_number(start)
            self.out.append(
                f'<div class="diff-table-wrapper added" data-line="{start}">'
                f"{number}{prefix}{table}</div>"
            )
        else:
            self.out.append(prefix + table)

        self.table_rows = []
        self.state = ScanState.DEFAULT


class MarkdownDiffRenderer:
    """Renders Markdown to HTML annotated with diff and comment information.

    The renderer is stateless between calls; all per-document state lives in
    a private render pass.

    Example:
        renderer = MarkdownDiffRenderer(RenderConfig())
        html = renderer.render(text, file_diff)
    """

    def __init__(self, config: RenderConfig | None = None) -> None:
        self._config = config or RenderConfig()

    @property
    def config(self) -> RenderConfig:
        return self._config

    def render(
        self,
        markdown: str,
        file_diff: FileDiff | None = None,
        show_line_numbers: bool | None = None,
        comments_data: CommentsData | None = None,
    ) -> str:
        """Render a document.

        Args:
            markdown: Document text, possibly containing comment markers and
                a COMMENTS-DATA ledger
            file_diff: Changes against the base revision, or None to render
                without decorations
            show_line_numbers: Show line numbers on added lines; defaults to
                the configured value
            comments_data: Parsed ledger; when None it is read from the
                document itself

        Returns:
            HTML fragment
        """
        if show_line_numbers is None:
            show_line_numbers = self._config.show_line_numbers
        if comments_data is None:
            comments_data = parse_ledger(markdown)

        log.debug(
            LogEventNames.RENDER_STARTED,
            lines=markdown.count("\n") + 1,
            has_diff=file_diff is not None,
            comments=len(comments_data or {}),
        )

        render_pass = _RenderPass(
            markdown, file_diff, show_line_numbers, comments_data, self._config
        )
        html = render_pass.run()

        log.debug(
            LogEventNames.RENDER_COMPLETE,
            comments_rendered=len(render_pass.threads),
            unmatched_markers=len(render_pass.unmatched),
            size=len(html),
        )
        return html


def render_markdown(
    markdown: str,
    file_diff: FileDiff | None = None,
    show_line_numbers: bool = True,
    comments_data: CommentsData | None = None,
    config: RenderConfig | None = None,
) -> str:
    """Render a document with a one-off renderer."""
    renderer = MarkdownDiffRenderer(config)
    return renderer.render(markdown, file_diff, show_line_numbers, comments_data)
