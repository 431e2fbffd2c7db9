"""Tests for comment ledger models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from markdown_diff_preview.models.comments import (
    Comment,
    CommentStatus,
    CommentTarget,
    CommentThreadItem,
    comments_adapter,
)


class TestCommentTarget:
    """Tests for CommentTarget validation."""

    def test_inline_target(self) -> None:
        """Inline targets carry text and position."""
        target = CommentTarget(type="inline", line=3, text="word", position=5)

        assert target.text == "word"
        assert target.element is None

    def test_rejects_unknown_type(self) -> None:
        """Only inline and block anchors exist."""
        with pytest.raises(ValidationError):
            CommentTarget(type="span", line=1)

    def test_rejects_line_zero(self) -> None:
        """Lines are 1-indexed."""
        with pytest.raises(ValidationError):
            CommentTarget(type="block", line=0)

    def test_keeps_unknown_keys(self) -> None:
        """Extra keys written by other tools survive a round trip."""
        target = CommentTarget.model_validate({"type": "block", "line": 2, "color": "red"})

        assert target.model_dump(exclude_unset=True)["color"] == "red"


class TestCommentThreadItem:
    """Tests for thread messages."""

    def test_parsed_timestamp(self) -> None:
        """Timestamps are stored verbatim and parsed on demand."""
        item = CommentThreadItem(id="1-1", author="ai", content="ok", timestamp="2025-01-15T10:30:00+00:00")

        assert item.timestamp == "2025-01-15T10:30:00+00:00"
        assert item.parsed_timestamp == datetime.fromisoformat("2025-01-15T10:30:00+00:00")

    def test_rejects_bad_timestamp(self) -> None:
        """Non ISO-8601 timestamps are invalid."""
        with pytest.raises(ValidationError, match="ISO-8601"):
            CommentThreadItem(id="1-1", author="user", content="x", timestamp="yesterday")

    def test_rejects_unknown_author(self) -> None:
        """Authors are user or ai."""
        with pytest.raises(ValidationError):
            CommentThreadItem(id="1-1", author="bot", content="x", timestamp="2025-01-15T10:30:00")


class TestCommentStatus:
    """Tests for the derived comment status."""

    def test_pending_without_thread(self, make_comment) -> None:
        """A comment with nothing attached is waiting for a plan."""
        assert make_comment(1, 1).status is CommentStatus.PENDING_PLAN

    def test_active_with_thread(self, make_comment) -> None:
        """A thread makes the comment active."""
        comment = make_comment(
            1,
            1,
            thread=[{"id": "1-1", "author": "user", "content": "hi", "timestamp": "2025-01-15T10:30:00"}],
        )

        assert comment.status is CommentStatus.ACTIVE

    def test_plan_wins_over_thread(self, make_comment) -> None:
        """A plan changes the status."""
        comment = make_comment(1, 1, plan={"content": "do it"})

        assert comment.status is CommentStatus.HAS_PLAN
        assert comment.plan is not None
        assert comment.plan.status == "pending"
        assert comment.plan.editable

    def test_response_wins_over_plan(self, make_comment) -> None:
        """A response is the most advanced status."""
        comment = make_comment(1, 1, plan={"content": "p"}, response={"content": "r"})

        assert comment.status is CommentStatus.HAS_RESPONSE
        assert comment.response is not None
        assert comment.response.status == "draft"

    def test_status_values(self) -> None:
        """Status values are used as CSS class suffixes."""
        assert f"comment-status-{CommentStatus.HAS_PLAN}" == "comment-status-has-plan"


class TestCommentsAdapter:
    """Tests for whole-ledger validation."""

    def test_validates_mapping(self) -> None:
        """The ledger is a mapping of stringified ids."""
        ledger = comments_adapter.validate_python(
            {"4": {"id": 4, "target": {"type": "block", "line": 2, "element": "h2"}}}
        )

        assert isinstance(ledger["4"], Comment)
        assert ledger["4"].thread == []

    def test_rejects_id_below_one(self) -> None:
        """Ids start at 1."""
        with pytest.raises(ValidationError):
            comments_adapter.validate_python({"0": {"id": 0, "target": {"type": "block", "line": 1}}})
