"""Shared test fixtures for markdown-diff-preview."""

from pathlib import Path

import pytest

from markdown_diff_preview.config.schema import RenderConfig
from markdown_diff_preview.core.renderer import MarkdownDiffRenderer
from markdown_diff_preview.models.comments import Comment

# Get the fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"
DIFFS_DIR = FIXTURES_DIR / "diffs"
DOCUMENTS_DIR = FIXTURES_DIR / "documents"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def modified_diff() -> str:
    """Load a diff that replaces one paragraph."""
    return (DIFFS_DIR / "modified.diff").read_text()


@pytest.fixture
def new_file_diff_text() -> str:
    """Load a diff for a newly added file."""
    return (DIFFS_DIR / "new_file.diff").read_text()


@pytest.fixture
def deleted_tail_diff() -> str:
    """Load a diff that removes the last lines of a file."""
    return (DIFFS_DIR / "deleted_tail.diff").read_text()


@pytest.fixture
def multi_file_diff() -> str:
    """Load a git diff covering two files."""
    return (DIFFS_DIR / "multi_file.diff").read_text()


@pytest.fixture
def commented_document() -> str:
    """Load a document with a block comment, an inline comment and a ledger."""
    return (DOCUMENTS_DIR / "commented.md").read_text()


@pytest.fixture
def plain_document() -> str:
    """Load a document using every supported block construct."""
    return (DOCUMENTS_DIR / "plain.md").read_text()


@pytest.fixture
def renderer() -> MarkdownDiffRenderer:
    """Create a renderer with default settings."""
    return MarkdownDiffRenderer(RenderConfig())


@pytest.fixture
def make_comment():
    """Factory for ledger comments."""

    def _make(
        comment_id: int,
        line: int,
        target_type: str = "inline",
        text: str | None = None,
        **extra,
    ) -> Comment:
        target: dict = {"type": target_type, "line": line}
        if text is not None:
            target["text"] = text
        return Comment.model_validate({"id": comment_id, "target": target, **extra})

    return _make
