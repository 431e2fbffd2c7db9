"""Data models and transfer objects."""

from .comments import (
    Comment,
    CommentDraft,
    CommentDraftItem,
    CommentPlan,
    CommentResponse,
    CommentsData,
    CommentStatus,
    CommentTarget,
    CommentThreadItem,
)
from .diff import DiffChange, DiffChangeType, DiffHunk, FileDiff

__all__ = [
    # Diff models
    "DiffChangeType",
    "DiffChange",
    "DiffHunk",
    "FileDiff",
    # Comment ledger models
    "CommentStatus",
    "CommentTarget",
    "CommentThreadItem",
    "CommentPlan",
    "CommentResponse",
    "Comment",
    "CommentDraft",
    "CommentDraftItem",
    "CommentsData",
]
