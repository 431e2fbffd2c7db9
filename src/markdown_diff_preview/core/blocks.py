"""Line classifier for the supported Markdown block grammar.

Each source line is classified on its own, in fixed priority order:
code fence, blank, table row, ATX header, horizontal rule, blockquote,
unordered item, ordered item, paragraph. Which construct a line continues
(list, table, code block) is decided by the renderer's scanner state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BlockKind(Enum):
    """Block construct a single line belongs to."""

    CODE_FENCE = "code_fence"
    BLANK = "blank"
    TABLE_ROW = "table_row"
    HEADER = "header"
    HORIZONTAL_RULE = "horizontal_rule"
    BLOCKQUOTE = "blockquote"
    UNORDERED_ITEM = "unordered_item"
    ORDERED_ITEM = "ordered_item"
    PARAGRAPH = "paragraph"


@dataclass(frozen=True)
class ClassifiedLine:
    """A line with its block kind and interior text."""

    kind: BlockKind
    text: str = ""  # Content without block syntax
    level: int = 0  # Header level
    indent: int = 0  # Leading whitespace of list items
    language: str = ""  # Info string of a code fence

    @property
    def is_list_item(self) -> bool:
        return self.kind in (BlockKind.UNORDERED_ITEM, BlockKind.ORDERED_ITEM)

    @property
    def list_tag(self) -> str:
        """``ul`` or ``ol`` for list items."""
        return "ol" if self.kind is BlockKind.ORDERED_ITEM else "ul"


CODE_FENCE = "```"
BULLETS = "-*+"
RULE_CHARS = "-*_"


def _leading_whitespace(line: str) -> int:
    return len(line) - len(line.lstrip())


def _split_marker(body: str, marker_end: int) -> str | None:
    """Return the item text after a list marker, or None if it is not one.

    The marker must be followed by whitespace and then non-blank text.
    """
    rest = body[marker_end:]
    if not rest or not rest[0].isspace():
        return None
    text = rest.lstrip()
    return text if text.strip() else None


def _unordered_item(line: str) -> tuple[int, str] | None:
    body = line.lstrip()
    if not body or body[0] not in BULLETS:
        return None
    text = _split_marker(body, 1)
    return None if text is None else (_leading_whitespace(line), text)


def _ordered_item(line: str) -> tuple[int, str] | None:
    body = line.lstrip()
    digits = 0
    while digits < len(body) and body[digits].isdigit():
        digits += 1
    if digits == 0 or digits >= len(body) or body[digits] != ".":
        return None
    text = _split_marker(body, digits + 1)
    return None if text is None else (_leading_whitespace(line), text)


def _header(line: str) -> tuple[int, str] | None:
    level = 0
    while level < len(line) and line[level] == "#":
        level += 1
    if not 1 <= level <= 6:
        return None
    rest = line[level:]
    if not rest or not rest[0].isspace() or not rest.strip():
        return None
    return level, rest.strip()


def _is_horizontal_rule(line: str) -> bool:
    stripped = line.strip()
    if len(stripped) < 3 or stripped[0] not in RULE_CHARS:
        return False
    return stripped == stripped[0] * len(stripped)


def is_table_row(line: str) -> bool:
    """Heuristic table-row test.

    A row starts with ``|`` or has at least two pipes outside ``[...]``
    link brackets. List items and blockquotes are never rows.
    """
    trimmed = line.strip()

    if _unordered_item(trimmed) is not None or _ordered_item(trimmed) is not None:
        return False
    if trimmed.startswith(">"):
        return False
    if trimmed.startswith("|"):
        return True

    pipes = 0
    depth = 0
    for char in trimmed:
        if char == "[":
            depth += 1
        elif char == "]":
            depth = max(0, depth - 1)
        elif char == "|" and depth == 0:
            pipes += 1

    return pipes >= 2


def is_table_separator(line: str) -> bool:
    """True for header separator rows such as ``|---|:--:|``."""
    body = line.strip()
    if body.startswith("|"):
        body = body[1:]
    body = body.lstrip()
    if not body or body[0] not in "-:":
        return False
    return all(char in "-|: \t" for char in body)


def parse_table_cells(line: str) -> list[str]:
    """Split a row into trimmed cells, dropping empty edge cells from outer pipes."""
    cells = [cell.strip() for cell in line.split("|")]
    if cells and cells[0] == "":
        cells = cells[1:]
    if cells and cells[-1] == "":
        cells = cells[:-1]
    return cells


def classify_line(line: str) -> ClassifiedLine:
    """Classify one source line.

    Args:
        line: Raw line without its newline

    Returns:
        ClassifiedLine for the highest-priority construct that matches
    """
    if line.startswith(CODE_FENCE):
        return ClassifiedLine(BlockKind.CODE_FENCE, language=line[len(CODE_FENCE) :].strip())

    if not line.strip():
        return ClassifiedLine(BlockKind.BLANK)

    if is_table_row(line):
        return ClassifiedLine(BlockKind.TABLE_ROW, text=line)

    header = _header(line)
    if header is not None:
        return ClassifiedLine(BlockKind.HEADER, text=header[1], level=header[0])

    if _is_horizontal_rule(line):
        return ClassifiedLine(BlockKind.HORIZONTAL_RULE)

    if line.startswith(">"):
        return ClassifiedLine(BlockKind.BLOCKQUOTE, text=line[1:].strip())

    unordered = _unordered_item(line)
    if unordered is not None:
        return ClassifiedLine(BlockKind.UNORDERED_ITEM, text=unordered[1], indent=unordered[0])

    ordered = _ordered_item(line)
    if ordered is not None:
        return ClassifiedLine(BlockKind.ORDERED_ITEM, text=ordered[1], indent=ordered[0])

    return ClassifiedLine(BlockKind.PARAGRAPH, text=line.strip())
