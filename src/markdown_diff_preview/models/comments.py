"""Pydantic models for the review-comment ledger.

The ledger is persisted as JSON inside the document it annotates, so these
models accept and preserve unknown keys (``extra="allow"``) and are dumped
with ``exclude_unset`` to keep a parse/serialize round trip stable.
"""

from datetime import datetime
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class CommentStatus(StrEnum):
    """Display status of a comment, derived from its contents."""

    PENDING_PLAN = "pending-plan"
    HAS_PLAN = "has-plan"
    HAS_RESPONSE = "has-response"
    ACTIVE = "active"


class _LedgerModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class CommentTarget(_LedgerModel):
    """Where a comment is anchored.

    ``line`` is the line of the commented content itself. Inline targets carry
    the matched ``text`` and the character ``position`` of the marker; block
    targets carry the ``element`` tag name of the targeted construct.
    """

    type: Literal["inline", "block"]
    line: int = Field(ge=1)
    text: str | None = None
    position: int | None = Field(default=None, ge=0)
    element: str | None = None


class CommentThreadItem(_LedgerModel):
    """One message in a comment thread."""

    id: str
    author: Literal["user", "ai"]
    content: str
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        """Require an ISO-8601 timestamp, stored verbatim."""
        try:
            datetime.fromisoformat(v)
        except ValueError as e:
            raise ValueError(f"Timestamp is not ISO-8601: {v!r}") from e
        return v

    @property
    def parsed_timestamp(self) -> datetime:
        """Timestamp as a datetime."""
        return datetime.fromisoformat(self.timestamp)


class CommentPlan(_LedgerModel):
    """Proposed document changes attached to a comment."""

    content: str
    status: Literal["pending", "approved", "rejected"] = "pending"
    editable: bool = True


class CommentResponse(_LedgerModel):
    """Direct reply to the commenter."""

    content: str
    status: Literal["draft", "final"] = "draft"
    editable: bool = True


class Comment(_LedgerModel):
    """A review comment as stored in the ledger."""

    id: int = Field(ge=1)
    target: CommentTarget
    thread: list[CommentThreadItem] = []
    plan: CommentPlan | None = None
    response: CommentResponse | None = None

    @property
    def status(self) -> CommentStatus:
        """Status used for badge and highlight styling."""
        if self.response is not None:
            return CommentStatus.HAS_RESPONSE
        if self.plan is not None:
            return CommentStatus.HAS_PLAN
        if self.thread:
            return CommentStatus.ACTIVE
        return CommentStatus.PENDING_PLAN


class CommentDraftItem(BaseModel):
    """A thread message for a comment that has not been assigned an id yet."""

    author: Literal["user", "ai"]
    content: str
    timestamp: str | None = None


class CommentDraft(BaseModel):
    """A new comment to be merged into a ledger."""

    target: CommentTarget
    thread: list[CommentDraftItem] = []
    plan: CommentPlan | None = None
    response: CommentResponse | None = None


# Mapping from stringified comment id to Comment
CommentsData = dict[str, Comment]

comments_adapter: TypeAdapter[CommentsData] = TypeAdapter(CommentsData)
