"""Protocol definitions for host-supplied collaborators."""

from .vcs import (
    BranchProvider,
    DiffText,
    DiffTextKind,
    DiffTextProvider,
    FileStatus,
    StatusProvider,
    status_from_porcelain,
)

__all__ = [
    "BranchProvider",
    "DiffText",
    "DiffTextKind",
    "DiffTextProvider",
    "FileStatus",
    "StatusProvider",
    "status_from_porcelain",
]
