"""Parser for unified diffs.

This module implements the DiffParser class that turns unified diff text
into a line-indexed FileDiff. It handles:
- Hunk headers with and without explicit line counts
- Runs of removed lines, attached to the first surviving line after them
- Trailing deletions at end of file
- New/deleted file headers (``/dev/null``)
- ``\\ No newline at end of file`` markers

The parser performs no I/O. Fetching diff text is the job of a
DiffTextProvider (see ``build_file_diff``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from markdown_diff_preview.interfaces.vcs import DiffTextKind
from markdown_diff_preview.models.diff import DiffChange, DiffChangeType, DiffHunk, FileDiff
from markdown_diff_preview.utils.logging import LogEventNames

if TYPE_CHECKING:
    from markdown_diff_preview.interfaces.vcs import DiffTextProvider

log = structlog.get_logger()


@dataclass
class _OpenHunk:
    """A hunk still receiving lines."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    changes: list[DiffChange] = field(default_factory=list)
    old_seen: int = 0
    new_seen: int = 0

    @property
    def exhausted(self) -> bool:
        """True once the declared line counts have all been consumed."""
        return self.old_seen >= self.old_lines and self.new_seen >= self.new_lines

    def freeze(self) -> DiffHunk:
        return DiffHunk(
            old_start=self.old_start,
            old_lines=self.old_lines,
            new_start=self.new_start,
            new_lines=self.new_lines,
            changes=tuple(self.changes),
        )


@dataclass
class _DiffScan:
    """Scanner state for a single parse."""

    hunks: list[DiffHunk] = field(default_factory=list)
    added_lines: set[int] = field(default_factory=set)
    removed_lines: dict[int, str] = field(default_factory=dict)
    current: _OpenHunk | None = None
    new_line: int = 0
    old_line: int = 0
    pending_removals: list[str] = field(default_factory=list)
    insert_point: int = 0
    is_new: bool = False
    is_deleted: bool = False

    def open_hunk(self, old_start: int, old_lines: int, new_start: int, new_lines: int) -> None:
        self.flush_removals()
        self.close_hunk()
        self.current = _OpenHunk(old_start, old_lines, new_start, new_lines)
        self.new_line = new_start
        self.old_line = old_start
        # A pure deletion names the line before the gap
        self.insert_point = new_start + 1 if new_lines == 0 else new_start

    def close_hunk(self) -> None:
        if self.current is not None:
            self.hunks.append(self.current.freeze())
            self.current = None

    def flush_removals(self) -> None:
        """Attach pending removed lines to the current insertion point."""
        if not self.pending_removals:
            return
        # Deleting the whole file leaves no line 0 to key on
        key = max(self.insert_point, 1)
        block = "\n".join(self.pending_removals)
        existing = self.removed_lines.get(key)
        self.removed_lines[key] = f"{existing}\n{block}" if existing is not None else block
        self.pending_removals = []

    def added(self, hunk: _OpenHunk, content: str) -> None:
        hunk.changes.append(
            DiffChange(type=DiffChangeType.ADDED, line_number=self.new_line, content=content)
        )
        hunk.new_seen += 1
        self.added_lines.add(self.new_line)
        # The addition replaces the deletions directly above it
        self.flush_removals()
        self.insert_point = self.new_line + 1
        self.new_line += 1

    def removed(self, hunk: _OpenHunk, content: str) -> None:
        hunk.changes.append(
            DiffChange(
                type=DiffChangeType.REMOVED,
                line_number=self.new_line,
                content=content,
                old_line_number=self.old_line,
            )
        )
        hunk.old_seen += 1
        self.pending_removals.append(content)
        self.old_line += 1

    def context(self, hunk: _OpenHunk, content: str) -> None:
        self.flush_removals()
        hunk.changes.append(
            DiffChange(
                type=DiffChangeType.CONTEXT,
                line_number=self.new_line,
                content=content,
                old_line_number=self.old_line,
            )
        )
        hunk.old_seen += 1
        hunk.new_seen += 1
        self.new_line += 1
        self.old_line += 1
        self.insert_point = self.new_line

    def finish(self, file_path: str) -> FileDiff:
        self.flush_removals()
        self.close_hunk()
        return FileDiff(
            file_path=file_path,
            is_new=self.is_new,
            is_deleted=self.is_deleted,
            hunks=tuple(self.hunks),
            added_lines=frozenset(self.added_lines),
            removed_lines=dict(self.removed_lines),
        )


class DiffParser:
    """Parser for unified diff text.

    Responsibilities:
    - Track new/old line counters across hunks
    - Record every added line number in the new file
    - Group runs of removed lines and key them by the new-file line they
      should be displayed before

    Example:
        parser = DiffParser()
        diff = parser.parse("docs/guide.md", diff_text)
        print(sorted(diff.added_lines))
    """

    HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
    OLD_FILE_HEADER = re.compile(r"^--- (.+)$")
    NEW_FILE_HEADER = re.compile(r"^\+\+\+ (.+)$")
    DEV_NULL = "/dev/null"

    def parse(self, file_path: str, diff_text: str) -> FileDiff:
        """Parse unified diff text for a single file.

        Malformed or unrecognized lines are skipped, never raised on.

        Args:
            file_path: Path the diff belongs to
            diff_text: Unified diff output

        Returns:
            FileDiff with hunks, added line numbers and removed blocks
        """
        scan = _DiffScan()
        lines = diff_text.split("\n")
        # A trailing newline is not a blank context line
        if lines and lines[-1] == "":
            lines.pop()

        for line in lines:
            header = self.HUNK_HEADER.match(line)
            if header:
                scan.open_hunk(
                    old_start=int(header.group(1)),
                    old_lines=int(header.group(2) or "1"),
                    new_start=int(header.group(3)),
                    new_lines=int(header.group(4) or "1"),
                )
                continue

            if scan.current is None:
                self._read_file_header(line, scan)
                continue

            if line.startswith("\\"):
                continue

            hunk = scan.current
            if hunk.exhausted and (line.startswith(("---", "+++")) or line == ""):
                continue

            if line.startswith("+"):
                scan.added(hunk, line[1:])
            elif line.startswith("-"):
                scan.removed(hunk, line[1:])
            elif line.startswith(" ") or line == "":
                scan.context(hunk, line[1:])

        diff = scan.finish(file_path)
        log.debug(
            LogEventNames.DIFF_PARSED,
            file_path=file_path,
            hunks=len(diff.hunks),
            added=diff.added_count,
            removed_blocks=len(diff.removed_lines),
        )
        return diff

    def _read_file_header(self, line: str, scan: _DiffScan) -> None:
        """Pick up new/deleted file markers that precede the first hunk."""
        old_match = self.OLD_FILE_HEADER.match(line)
        if old_match and old_match.group(1).strip() == self.DEV_NULL:
            scan.is_new = True
            return

        new_match = self.NEW_FILE_HEADER.match(line)
        if new_match and new_match.group(1).strip() == self.DEV_NULL:
            scan.is_deleted = True
            return

        if line.startswith("new file mode"):
            scan.is_new = True
        elif line.startswith("deleted file mode"):
            scan.is_deleted = True


_parser = DiffParser()


def parse_diff(file_path: str, diff_text: str) -> FileDiff:
    """Parse unified diff text for a single file with the shared parser."""
    return _parser.parse(file_path, diff_text)


def new_file_diff(file_path: str, line_count: int) -> FileDiff:
    """Diff for a file that is not tracked: every line is an addition."""
    return FileDiff(
        file_path=file_path,
        is_new=True,
        added_lines=frozenset(range(1, line_count + 1)),
    )


def empty_file_diff(file_path: str) -> FileDiff:
    """Diff for a tracked file with no changes."""
    return FileDiff(file_path=file_path)


def extract_new_file_content(diff_text: str) -> str:
    """Rebuild the post-change text of a file from its diff.

    Only lines visible in the hunks (context and additions) are included, so
    this is the whole file only when the diff carries full context.

    Args:
        diff_text: Unified diff output

    Returns:
        New-file content joined with newlines
    """
    diff = _parser.parse("", diff_text)
    return "\n".join(
        change.content
        for hunk in diff.hunks
        for change in hunk.changes
        if change.type is not DiffChangeType.REMOVED
    )


_FILE_SPLIT = re.compile(r"^diff --git ", re.MULTILINE)
_GIT_HEADER_PATHS = re.compile(r"^a/(.+?) b/(.+)$")


def split_file_diffs(diff_text: str) -> dict[str, str]:
    """Split a multi-file ``git diff`` stream into per-file diffs.

    Args:
        diff_text: Output of ``git diff`` covering one or more files

    Returns:
        Mapping of file path (new path, or old path for deletions) to the
        diff text for that file, in input order
    """
    files: dict[str, str] = {}

    for chunk in _FILE_SPLIT.split(diff_text):
        if not chunk.strip():
            continue

        chunk_lines = chunk.split("\n")
        path: str | None = None

        new_path = re.search(r"^\+\+\+ (?:b/)?(.+)$", chunk, re.MULTILINE)
        if new_path and new_path.group(1).strip() != DiffParser.DEV_NULL:
            path = new_path.group(1).strip()
        else:
            old_path = re.search(r"^--- (?:a/)?(.+)$", chunk, re.MULTILINE)
            if old_path and old_path.group(1).strip() != DiffParser.DEV_NULL:
                path = old_path.group(1).strip()

        if path is None:
            header = _GIT_HEADER_PATHS.match(chunk_lines[0].strip())
            if not header:
                continue
            path = header.group(2)

        files[path] = "diff --git " + chunk

    return files


def build_file_diff(
    provider: DiffTextProvider,
    file_path: str,
    base_ref: str,
    line_count: int,
) -> FileDiff | None:
    """Ask a provider for a file's diff and turn the answer into a FileDiff.

    Args:
        provider: Host-supplied source of diff text
        file_path: Path of the file relative to the repository root
        base_ref: Revision to diff against
        line_count: Number of lines in the current document, used when the
            file is untracked

    Returns:
        FileDiff, or None if the provider could not produce a diff
    """
    result = provider.get_diff_text(file_path, base_ref)

    if result is None:
        log.info(LogEventNames.DIFF_UNAVAILABLE, file_path=file_path, base_ref=base_ref)
        return None

    if result.kind is DiffTextKind.NEW_FILE:
        log.debug(LogEventNames.DIFF_UNTRACKED_FILE, file_path=file_path, lines=line_count)
        return new_file_diff(file_path, line_count)

    if result.kind is DiffTextKind.NO_CHANGES or not result.text.strip():
        return empty_file_diff(file_path)

    return parse_diff(file_path, result.text)
