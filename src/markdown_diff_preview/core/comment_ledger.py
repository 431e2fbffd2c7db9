"""Comment markers and the embedded COMMENTS-DATA ledger.

A Markdown document carries its own review comments:
- ``<!--comment:N-->`` placed directly after commented text (inline), or
  alone on the line before a commented element (block)
- a single ``<!--\\nCOMMENTS-DATA\\n{json}\\n-->`` block at the end of the
  file mapping each id to its Comment

Everything here is a pure function over document text. Reading and writing
the file is the caller's job.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError

from markdown_diff_preview.models.comments import (
    Comment,
    CommentDraft,
    CommentPlan,
    CommentResponse,
    CommentsData,
    CommentThreadItem,
    comments_adapter,
)
from markdown_diff_preview.utils.logging import LogEventNames

log = structlog.get_logger()

MARKER_PATTERN = re.compile(r"<!--comment:(\d+)-->")
BLOCK_MARKER_PATTERN = re.compile(r"^\s*<!--comment:(\d+)-->\s*$")
LEDGER_PATTERN = re.compile(r"<!--\s*COMMENTS-DATA\s*([\s\S]*?)\s*-->")
LEDGER_HEADER = "COMMENTS-DATA"
CODE_FENCE = "```"


class CommentLedgerError(Exception):
    """Base exception for comment ledger errors."""


class LedgerNotFoundError(CommentLedgerError):
    """The document has no readable COMMENTS-DATA block."""


class CommentNotFoundError(CommentLedgerError):
    """A comment id is referenced that the ledger does not contain."""

    def __init__(self, comment_id: int) -> None:
        super().__init__(f"Comment {comment_id} not found")
        self.comment_id = comment_id


class InvalidCommentFieldError(CommentLedgerError, ValueError):
    """Only ``plan`` and ``response`` can be edited."""


# --- Markers ---------------------------------------------------------------


def extract_markers(line: str) -> list[int]:
    """Return the ids of every comment marker in a line, in order."""
    return [int(m.group(1)) for m in MARKER_PATTERN.finditer(line)]


def block_marker_id(line: str) -> int | None:
    """Return the id if the line consists of exactly one marker, else None."""
    match = BLOCK_MARKER_PATTERN.match(line)
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class MarkerMap:
    """Comment ids keyed by the 1-indexed line of the content they annotate.

    ``block`` holds ids whose marker sits alone on a preceding line; they are
    keyed by the next content line, not the marker line. ``inline`` holds
    ids embedded in the line's own text. ``marker_lines`` are the lines
    consisting only of a block marker.
    """

    inline: dict[int, list[int]] = field(default_factory=dict)
    block: dict[int, list[int]] = field(default_factory=dict)
    marker_lines: frozenset[int] = frozenset()

    def ids_for_line(self, line_number: int) -> list[int]:
        """Block ids first, then inline ids, for a content line."""
        return [*self.block.get(line_number, []), *self.inline.get(line_number, [])]

    @property
    def all_ids(self) -> set[int]:
        """Every id referenced by a marker in the document."""
        ids = {i for ids in self.inline.values() for i in ids}
        ids.update(i for ids in self.block.values() for i in ids)
        return ids


def extract_marker_map(markdown: str) -> MarkerMap:
    """Locate every comment marker in a document.

    Block markers attach to the next line that is neither a marker nor blank.
    Markers inside fenced code blocks are code, not comments. Block markers
    with no content line after them are dropped.

    Args:
        markdown: Document text

    Returns:
        MarkerMap of inline and block ids by content line
    """
    inline: dict[int, list[int]] = {}
    block: dict[int, list[int]] = {}
    marker_lines: set[int] = set()
    pending_block: list[int] = []
    in_code = False

    for index, line in enumerate(markdown.split("\n")):
        line_number = index + 1

        if line.startswith(CODE_FENCE):
            in_code = not in_code
        elif in_code:
            continue
        else:
            marker_id = block_marker_id(line)
            if marker_id is not None:
                pending_block.append(marker_id)
                marker_lines.add(line_number)
                continue

            ids = extract_markers(line)
            if ids:
                inline[line_number] = ids

        if not line.strip():
            continue

        if pending_block:
            block.setdefault(line_number, []).extend(pending_block)
            pending_block = []

    return MarkerMap(inline=inline, block=block, marker_lines=frozenset(marker_lines))


def strip_markers(markdown: str) -> str:
    """Remove comment markers from a document.

    Lines holding only a block marker are dropped entirely, inline markers
    are removed in place. Code blocks are left untouched.
    """
    output: list[str] = []
    in_code = False

    for line in markdown.split("\n"):
        if line.startswith(CODE_FENCE):
            in_code = not in_code
            output.append(line)
            continue
        if in_code:
            output.append(line)
            continue
        if block_marker_id(line) is not None:
            continue
        output.append(MARKER_PATTERN.sub("", line))

    return "\n".join(output)


# --- Ledger parsing and serialization --------------------------------------


def find_ledger_block(markdown: str) -> re.Match[str] | None:
    """Return the match for the last COMMENTS-DATA block, if any."""
    last: re.Match[str] | None = None
    for match in LEDGER_PATTERN.finditer(markdown):
        last = match
    return last


def parse_ledger(markdown: str) -> CommentsData | None:
    """Parse the COMMENTS-DATA block of a document.

    Never raises for malformed content: an absent block returns None
    silently, an unreadable one is logged and returns None. Duplicate ids
    keep their first occurrence.

    Args:
        markdown: Document text

    Returns:
        Mapping of stringified id to Comment, or None
    """
    match = find_ledger_block(markdown)
    if match is None:
        log.debug(LogEventNames.LEDGER_NOT_FOUND)
        return None

    body = match.group(1).strip()
    if not body:
        return None

    duplicates: list[str] = []

    def keep_first(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in pairs:
            if key in result:
                duplicates.append(key)
                continue
            result[key] = value
        return result

    try:
        raw = json.loads(body, object_pairs_hook=keep_first)
    except json.JSONDecodeError as e:
        log.warning(LogEventNames.LEDGER_INVALID_JSON, error=str(e), line=e.lineno)
        return None

    if not isinstance(raw, dict):
        log.warning(LogEventNames.LEDGER_NOT_MAPPING, found=type(raw).__name__)
        return None

    for key in duplicates:
        log.warning(LogEventNames.LEDGER_DUPLICATE_ID, key=key)

    bad_keys = [key for key in raw if not (key.isascii() and key.isdigit())]
    if bad_keys:
        log.warning(LogEventNames.LEDGER_NOT_MAPPING, bad_keys=bad_keys)
        return None

    try:
        comments = comments_adapter.validate_python(raw)
    except ValidationError as e:
        log.warning(
            LogEventNames.LEDGER_VALIDATION_FAILED,
            error_count=e.error_count(),
            errors=[err["loc"] for err in e.errors()],
        )
        return None

    for key, comment in comments.items():
        if int(key) != comment.id:
            log.warning(LogEventNames.LEDGER_ID_MISMATCH, key=key, comment_id=comment.id)

    return comments


def serialize_ledger(comments: CommentsData, indent: int = 2) -> str:
    """Render a ledger as its embedded HTML-comment block.

    Fields absent from the parsed input stay absent, so parse followed by
    serialize is stable. ``-->`` and ``<!--`` inside string values are
    written as JSON unicode escapes so the block cannot end early.
    """
    payload = {
        key: comment.model_dump(mode="json", exclude_unset=True)
        for key, comment in comments.items()
    }
    body = json.dumps(payload, indent=indent, ensure_ascii=False)
    body = body.replace("-->", "--\\u003e").replace("<!--", "\\u003c!--")
    return f"<!--\n{LEDGER_HEADER}\n{body}\n-->"


def write_ledger(markdown: str, comments: CommentsData, indent: int = 2) -> str:
    """Return the document with its ledger block replaced (or appended)."""
    block = serialize_ledger(comments, indent=indent)
    match = find_ledger_block(markdown)

    if match is not None:
        updated = markdown[: match.start()] + block + markdown[match.end() :]
    else:
        body = markdown.rstrip("\n")
        separator = "\n\n" if body else ""
        updated = f"{body}{separator}{block}\n"

    log.debug(LogEventNames.LEDGER_WRITTEN, comments=len(comments))
    return updated


# --- Mutation ----------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


def merge_ledger(
    existing: CommentsData | None,
    new_entries: Iterable[CommentDraft],
    reserved_ids: Iterable[int] = (),
) -> CommentsData:
    """Add new comments to a ledger.

    Each draft gets the next unused id: one more than the highest id in the
    ledger or in ``reserved_ids``, so ids are never reused. Existing entries
    are copied, never modified.

    Args:
        existing: Current ledger, or None for a document without one
        new_entries: Comments to add, in order
        reserved_ids: Ids that must not be assigned (e.g. ids of markers
            still present in the document)

    Returns:
        New mapping containing existing and added comments
    """
    result: CommentsData = {
        key: comment.model_copy(deep=True) for key, comment in (existing or {}).items()
    }

    taken = [int(key) for key in result]
    taken.extend(comment.id for comment in result.values())
    taken.extend(reserved_ids)
    next_id = max(taken, default=0) + 1

    added: list[int] = []
    for draft in new_entries:
        comment_id = next_id
        next_id += 1

        thread = [
            CommentThreadItem(
                id=f"{comment_id}-{sequence}",
                author=item.author,
                content=item.content.strip(),
                timestamp=item.timestamp or _now_iso(),
            )
            for sequence, item in enumerate(draft.thread, start=1)
        ]
        plan = (
            draft.plan.model_copy(update={"content": draft.plan.content.strip()})
            if draft.plan is not None
            else None
        )
        response = (
            draft.response.model_copy(update={"content": draft.response.content.strip()})
            if draft.response is not None
            else None
        )

        fields: dict[str, Any] = {
            "id": comment_id,
            "target": draft.target.model_copy(deep=True),
            "thread": thread,
        }
        # Unset fields stay out of the serialized ledger
        if plan is not None:
            fields["plan"] = plan
        if response is not None:
            fields["response"] = response

        result[str(comment_id)] = Comment(**fields)
        added.append(comment_id)

    if added:
        log.info(LogEventNames.COMMENTS_MERGED, added=added)
    return result


def update_comment_field(
    comments: CommentsData,
    comment_id: int,
    field_name: str,
    content: str,
) -> CommentsData:
    """Set the ``plan`` or ``response`` content of one comment.

    A missing plan is created as ``pending``, a missing response as
    ``draft``, both editable. Other comments are carried over untouched.

    Args:
        comments: Current ledger
        comment_id: Id of the comment to edit
        field_name: ``"plan"`` or ``"response"``
        content: New content (trimmed before storing)

    Returns:
        New mapping with the edited comment

    Raises:
        InvalidCommentFieldError: If field_name is not plan or response
        CommentNotFoundError: If the ledger has no such comment
    """
    if field_name not in ("plan", "response"):
        raise InvalidCommentFieldError(f"Invalid comment field: {field_name}")

    key = str(comment_id)
    if key not in comments:
        raise CommentNotFoundError(comment_id)

    comment = comments[key].model_copy(deep=True)
    text = content.strip()

    if field_name == "plan":
        if comment.plan is None:
            comment.plan = CommentPlan(content=text, status="pending", editable=True)
        else:
            comment.plan = comment.plan.model_copy(update={"content": text})
    else:
        if comment.response is None:
            comment.response = CommentResponse(content=text, status="draft", editable=True)
        else:
            comment.response = comment.response.model_copy(update={"content": text})

    result = dict(comments)
    result[key] = comment
    log.info(LogEventNames.COMMENT_UPDATED, comment_id=comment_id, field=field_name)
    return result


def add_comments(
    markdown: str,
    drafts: Sequence[CommentDraft],
    indent: int = 2,
    reserve_marker_ids: bool = True,
) -> tuple[str, list[int]]:
    """Merge new comments into a document's ledger.

    Placing the markers for the new ids is left to the caller.

    Args:
        markdown: Document text
        drafts: Comments to add
        indent: JSON indentation of the rewritten ledger
        reserve_marker_ids: Never assign an id that a marker in the text
            already uses

    Returns:
        Tuple of (rewritten document, ids assigned to the drafts in order)

    Raises:
        CommentLedgerError: If a ledger block exists but cannot be parsed,
            since rewriting it would discard its contents
    """
    existing = parse_ledger(markdown)
    block = find_ledger_block(markdown)
    if existing is None and block is not None and block.group(1).strip():
        raise CommentLedgerError("Existing COMMENTS-DATA block could not be parsed")

    reserved = extract_marker_map(markdown).all_ids if reserve_marker_ids else set()
    merged = merge_ledger(existing, drafts, reserved)
    new_ids = [int(key) for key in merged if existing is None or key not in existing]

    return write_ledger(markdown, merged, indent=indent), new_ids


def update_comment(
    markdown: str,
    comment_id: int,
    field_name: str,
    content: str,
    indent: int = 2,
) -> str:
    """Edit one comment's plan or response and rewrite the ledger block.

    Raises:
        LedgerNotFoundError: If the document has no readable ledger
        CommentNotFoundError: If the ledger has no such comment
        InvalidCommentFieldError: If field_name is not plan or response
    """
    comments = parse_ledger(markdown)
    if comments is None:
        raise LedgerNotFoundError("COMMENTS-DATA block not found or unreadable")

    updated = update_comment_field(comments, comment_id, field_name, content)
    return write_ledger(markdown, updated, indent=indent)


def status_class(comments: Iterable[Comment]) -> str:
    """Highlight class for a group of comments anchored together."""
    group = list(comments)
    if any(c.response is not None for c in group):
        return "comment-has-response"
    if any(c.plan is not None for c in group):
        return "comment-has-plan"
    return "comment-active"
