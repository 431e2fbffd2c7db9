"""Abstract interfaces for the version-control collaborators.

Retrieving diff text, branch names and file status is the host's job. The
core only consumes the values these providers hand back.
"""

from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Protocol


class DiffTextKind(Enum):
    """What a diff provider found for a file."""

    CHANGED = "changed"
    NEW_FILE = "new_file"  # Not tracked by version control
    NO_CHANGES = "no_changes"


@dataclass(frozen=True)
class DiffText:
    """Answer from a DiffTextProvider."""

    kind: DiffTextKind
    text: str = ""  # Unified diff text, only meaningful for CHANGED


class FileStatus(StrEnum):
    """Working-tree status of a file."""

    NEW = "new"
    MODIFIED = "modified"
    DELETED = "deleted"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class DiffTextProvider(Protocol):
    """Supplies unified diff text for a file relative to a base revision."""

    def get_diff_text(self, file_path: str, base_ref: str) -> DiffText | None:
        """
        Fetch the diff of a file against a base revision.

        Args:
            file_path: Path of the file relative to the repository root
            base_ref: Revision to diff against (e.g., "HEAD")

        Returns:
            DiffText describing the change, or None if the file is not
            inside a repository or the diff could not be obtained
        """
        ...


class BranchProvider(Protocol):
    """Supplies the current branch name."""

    def get_branch(self) -> str | None:
        """
        Get the name of the checked-out branch.

        Returns:
            Branch name, or None when detached or unavailable
        """
        ...


class StatusProvider(Protocol):
    """Supplies the working-tree status of a file."""

    def get_status(self, file_path: str) -> FileStatus | None:
        """
        Get the status of a file.

        Args:
            file_path: Path of the file relative to the repository root

        Returns:
            FileStatus, or None if unavailable
        """
        ...


def status_from_porcelain(code: str) -> FileStatus:
    """Map a two-letter ``git status --porcelain`` code to a FileStatus.

    Args:
        code: Porcelain output for a single file (only the first two
            characters are examined); empty means unchanged

    Returns:
        The corresponding FileStatus
    """
    xy = code[:2]
    if not xy.strip():
        return FileStatus.UNCHANGED
    if "A" in xy or xy == "??":
        return FileStatus.NEW
    if "M" in xy:
        return FileStatus.MODIFIED
    if "D" in xy:
        return FileStatus.DELETED
    return FileStatus.CHANGED
