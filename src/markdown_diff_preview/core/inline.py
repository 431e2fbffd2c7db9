"""Inline Markdown tokenizer.

Text is HTML-escaped first and then scanned left to right. At each position
the constructs are tried in a fixed order: bold (``**`` / ``__``) before
italic (``*`` / ``_``), then strikethrough, code span, image and link.
Code spans are literal; emphasis and link text are tokenized recursively.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from enum import Enum


class InlineKind(Enum):
    """Inline construct kinds."""

    TEXT = "text"
    STRONG = "strong"
    EMPHASIS = "em"
    STRIKE = "del"
    CODE = "code"
    LINK = "a"
    IMAGE = "img"


@dataclass(frozen=True)
class InlineNode:
    """A node of the inline syntax tree. ``text`` is already escaped."""

    kind: InlineKind
    text: str = ""
    children: tuple[InlineNode, ...] = ()
    url: str = ""


def escape_html(text: str) -> str:
    """Escape ``& < > " '`` for safe embedding in HTML text and attributes."""
    return html.escape(text, quote=True)


class InlineTokenizer:
    """Tokenizer for the supported inline grammar.

    Example:
        tokenizer = InlineTokenizer()
        nodes = tokenizer.tokenize(escape_html("a **b** c"))
        print(tokenizer.to_html(nodes))
    """

    PAIRED = (
        ("**", InlineKind.STRONG),
        ("__", InlineKind.STRONG),
        ("*", InlineKind.EMPHASIS),
        ("_", InlineKind.EMPHASIS),
        ("~~", InlineKind.STRIKE),
    )

    def tokenize(self, text: str) -> list[InlineNode]:
        """Split escaped text into inline nodes.

        Unmatched delimiters are kept as literal text.
        """
        nodes: list[InlineNode] = []
        buffer: list[str] = []
        i = 0

        def flush() -> None:
            if buffer:
                nodes.append(InlineNode(InlineKind.TEXT, text="".join(buffer)))
                buffer.clear()

        while i < len(text):
            match = self._match_at(text, i)
            if match is None:
                buffer.append(text[i])
                i += 1
                continue
            node, i = match
            flush()
            nodes.append(node)

        flush()
        return nodes

    def _match_at(self, text: str, i: int) -> tuple[InlineNode, int] | None:
        for delimiter, kind in self.PAIRED:
            if text.startswith(delimiter, i):
                start = i + len(delimiter)
                # Content must be at least one character
                end = text.find(delimiter, start + 1)
                if end != -1:
                    children = tuple(self.tokenize(text[start:end]))
                    return InlineNode(kind, children=children), end + len(delimiter)

        char = text[i]
        if char == "`":
            end = text.find("`", i + 1)
            if end > i + 1:
                return InlineNode(InlineKind.CODE, text=text[i + 1 : end]), end + 1
            return None

        if char == "!" and text.startswith("![", i):
            parsed = self._bracket_then_url(text, i + 1, allow_empty_label=True)
            if parsed is not None:
                alt, url, end = parsed
                return InlineNode(InlineKind.IMAGE, text=alt, url=url), end
            return None

        if char == "[":
            parsed = self._bracket_then_url(text, i, allow_empty_label=False)
            if parsed is not None:
                label, url, end = parsed
                children = tuple(self.tokenize(label))
                return InlineNode(InlineKind.LINK, children=children, url=url), end

        return None

    @staticmethod
    def _bracket_then_url(
        text: str, i: int, allow_empty_label: bool
    ) -> tuple[str, str, int] | None:
        """Parse ``[label](url)`` starting at the ``[`` at index ``i``."""
        close = text.find("]", i + 1)
        if close == -1 or (close == i + 1 and not allow_empty_label):
            return None
        if not text.startswith("(", close + 1):
            return None
        url_end = text.find(")", close + 2)
        if url_end <= close + 2:
            return None
        return text[i + 1 : close], text[close + 2 : url_end], url_end + 1

    def to_html(self, nodes: list[InlineNode], wrap_plain_text: bool = False) -> str:
        """Render nodes to HTML.

        Args:
            nodes: Output of ``tokenize``
            wrap_plain_text: Wrap top-level, non-blank text runs in
                ``<span class="plain-text">`` so they can be edited in place

        Returns:
            HTML fragment
        """
        parts: list[str] = []
        for node in nodes:
            if node.kind is InlineKind.TEXT:
                if wrap_plain_text and node.text.strip():
                    parts.append(f'<span class="plain-text">{node.text}</span>')
                else:
                    parts.append(node.text)
            elif node.kind is InlineKind.CODE:
                parts.append(f"<code>{node.text}</code>")
            elif node.kind is InlineKind.IMAGE:
                parts.append(f'<img src="{node.url}" alt="{node.text}" />')
            elif node.kind is InlineKind.LINK:
                parts.append(f'<a href="{node.url}">{self.to_html(list(node.children))}</a>')
            else:
                tag = node.kind.value
                parts.append(f"<{tag}>{self.to_html(list(node.children))}</{tag}>")
        return "".join(parts)


_tokenizer = InlineTokenizer()


def render_inline(text: str, wrap_plain_text: bool = True) -> str:
    """Escape and render one line of inline Markdown to HTML."""
    return _tokenizer.to_html(_tokenizer.tokenize(escape_html(text)), wrap_plain_text)
