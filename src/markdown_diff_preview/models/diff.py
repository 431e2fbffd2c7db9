"""Data models for parsed unified diffs."""

from dataclasses import dataclass, field
from enum import Enum


class DiffChangeType(Enum):
    """Status of a single line within a hunk."""

    ADDED = "added"
    REMOVED = "removed"
    CONTEXT = "context"


@dataclass(frozen=True)
class DiffChange:
    """One line of a diff hunk."""

    type: DiffChangeType
    line_number: int  # Position in the new file (1-indexed)
    content: str  # Raw text without the diff prefix or trailing newline
    old_line_number: int | None = None  # Position in the old file (removed/context only)


@dataclass(frozen=True)
class DiffHunk:
    """A contiguous region of change, as declared by an ``@@`` header."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    changes: tuple[DiffChange, ...] = ()

    @property
    def added(self) -> tuple[DiffChange, ...]:
        """Changes that are additions."""
        return tuple(c for c in self.changes if c.type is DiffChangeType.ADDED)

    @property
    def removed(self) -> tuple[DiffChange, ...]:
        """Changes that are removals."""
        return tuple(c for c in self.changes if c.type is DiffChangeType.REMOVED)


@dataclass(frozen=True)
class FileDiff:
    """Line-indexed diff model for one file.

    ``added_lines`` holds new-file line numbers that are additions.
    ``removed_lines`` maps a new-file line number to the block of removed
    text displayed immediately before that line. A key one past the last
    line of the document carries trailing deletions.
    """

    file_path: str
    is_new: bool = False
    is_deleted: bool = False
    hunks: tuple[DiffHunk, ...] = ()
    added_lines: frozenset[int] = frozenset()
    removed_lines: dict[int, str] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        """True if any line was added or removed."""
        return bool(self.added_lines or self.removed_lines)

    @property
    def added_count(self) -> int:
        """Number of added lines."""
        return len(self.added_lines)

    @property
    def removed_count(self) -> int:
        """Number of non-blank removed lines across all removal blocks."""
        return sum(
            1
            for block in self.removed_lines.values()
            for line in block.split("\n")
            if line.strip()
        )
