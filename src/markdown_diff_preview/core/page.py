"""Standalone HTML page around a rendered fragment."""

from __future__ import annotations

from typing import TYPE_CHECKING

from markdown_diff_preview.core.inline import escape_html

if TYPE_CHECKING:
    from markdown_diff_preview.interfaces.vcs import FileStatus
    from markdown_diff_preview.models.diff import FileDiff


PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Markdown Diff Preview - {file_name}</title>
{stylesheet}</head>
<body>
    <div class="header">
        <div class="header-left">
            <span class="file-name">{file_name}</span>
            <div class="git-info">{git_info}</div>
        </div>
        <div class="diff-stats">{stats}<span class="diff-base">vs {base_ref}</span></div>
    </div>

    <div class="content">
{content}
    </div>
</body>
</html>
"""


def _stats(file_diff: FileDiff | None) -> str:
    if file_diff is None:
        return ""
    parts = []
    if file_diff.added_count:
        parts.append(f'<span class="stat additions">+{file_diff.added_count} added</span>')
    if file_diff.removed_count:
        removed = file_diff.removed_count
        parts.append(f'<span class="stat deletions">&minus;{removed} removed</span>')
    return "".join(parts)


def render_page(
    content: str,
    file_name: str,
    file_diff: FileDiff | None = None,
    branch: str | None = None,
    status: FileStatus | None = None,
    base_ref: str = "HEAD",
    stylesheet: str | None = None,
) -> str:
    """Wrap a rendered fragment in a complete HTML document.

    Args:
        content: Output of ``MarkdownDiffRenderer.render``
        file_name: Name shown in the title and header
        file_diff: Diff used for the added/removed counters
        branch: Branch badge text
        status: File status badge
        base_ref: Revision the diff was taken against
        stylesheet: Href of a stylesheet to link

    Returns:
        HTML document
    """
    git_info = []
    if branch:
        git_info.append(f'<span class="branch-badge">{escape_html(branch)}</span>')
    if status is not None:
        git_info.append(f'<span class="status-badge {status}">{status}</span>')

    link = f'    <link rel="stylesheet" href="{escape_html(stylesheet)}">\n' if stylesheet else ""

    return PAGE_TEMPLATE.format(
        file_name=escape_html(file_name),
        stylesheet=link,
        git_info="".join(git_info),
        stats=_stats(file_diff),
        base_ref=escape_html(base_ref),
        content=content,
    )
