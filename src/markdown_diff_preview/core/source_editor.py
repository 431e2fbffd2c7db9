"""Map edits made on rendered elements back onto Markdown source lines."""

from __future__ import annotations

import re

import structlog

from markdown_diff_preview.utils.logging import LogEventNames

log = structlog.get_logger()

FORMATTED_REGIONS = (
    re.compile(r"\*\*[^*]+\*\*"),
    re.compile(r"\*[^*]+\*"),
    re.compile(r"`[^`]+`"),
    re.compile(r"~~[^~]+~~"),
    re.compile(r"\[[^\]]+\]\([^)]+\)"),
)

BLOCK_PREFIXES = (
    re.compile(r"^(#{1,6}\s+)"),
    re.compile(r"^(\s*[-*+]\s+)"),
    re.compile(r"^(\s*\d+\.\s+)"),
    re.compile(r"^(>\s*)"),
)


def _replace_first(line: str, *replacements: tuple[str, str]) -> str:
    """Apply the first replacement whose old text occurs in the line."""
    for old, new in replacements:
        if old in line:
            return line.replace(old, new, 1)
    return line


def _replace_unformatted(line: str, original: str, new: str) -> str:
    """Replace the first occurrence of ``original`` outside any inline formatting."""
    regions = [
        (m.start(), m.end()) for pattern in FORMATTED_REGIONS for m in pattern.finditer(line)
    ]

    start = 0
    while (index := line.find(original, start)) != -1:
        if not any(region_start <= index < region_end for region_start, region_end in regions):
            return line[:index] + new + line[index + len(original) :]
        start = index + 1
    return line


def _replace_block_body(line: str, new: str) -> str:
    for prefix in BLOCK_PREFIXES:
        match = prefix.match(line)
        if match:
            return match.group(1) + new
    return new


def apply_element_edit(line: str, element_type: str, original_text: str, new_text: str) -> str:
    """Rewrite one Markdown line after a rendered element was edited.

    Args:
        line: Current source line
        element_type: Tag of the edited element: ``strong``, ``em``, ``del``,
            ``code``, ``a``, ``td``/``th``, ``plain`` (a plain-text span), or
            anything else for a whole block element
        original_text: Element text before the edit
        new_text: Element text after the edit

    Returns:
        Updated line; the input line if the original text cannot be found
    """
    if element_type == "strong":
        return _replace_first(
            line,
            (f"**{original_text}**", f"**{new_text}**"),
            (f"__{original_text}__", f"**{new_text}**"),
        )

    if element_type == "em":
        escaped = re.escape(original_text)
        for pattern in (rf"(?<!\*)\*{escaped}\*(?!\*)", rf"(?<!_)_{escaped}_(?!_)"):
            match = re.search(pattern, line)
            if match:
                return line[: match.start()] + f"*{new_text}*" + line[match.end() :]
        return line

    if element_type == "del":
        return _replace_first(line, (f"~~{original_text}~~", f"~~{new_text}~~"))

    if element_type == "code":
        return _replace_first(line, (f"`{original_text}`", f"`{new_text}`"))

    if element_type == "a":
        link = re.compile(rf"\[{re.escape(original_text)}\]\(([^)]+)\)")
        return link.sub(lambda m: f"[{new_text}]({m.group(1)})", line, count=1)

    if element_type in ("td", "th"):
        return _replace_first(line, (original_text, new_text))

    if element_type in ("plain", "span"):
        return _replace_unformatted(line, original_text, new_text)

    return _replace_block_body(line, new_text)


def edit_document_line(
    markdown: str,
    line_number: int,
    element_type: str,
    original_text: str,
    new_text: str,
) -> str:
    """Apply ``apply_element_edit`` to a 1-indexed line of a document.

    Out-of-range line numbers leave the document unchanged.
    """
    lines = markdown.split("\n")
    if not 1 <= line_number <= len(lines):
        log.warning(LogEventNames.ELEMENT_EDIT_OUT_OF_RANGE, line=line_number, lines=len(lines))
        return markdown

    index = line_number - 1
    lines[index] = apply_element_edit(lines[index], element_type, original_text, new_text)
    return "\n".join(lines)
