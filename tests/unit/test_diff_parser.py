"""Tests for DiffParser and diff helper functions."""

import pytest

from markdown_diff_preview.core.diff_parser import (
    DiffParser,
    build_file_diff,
    empty_file_diff,
    extract_new_file_content,
    new_file_diff,
    parse_diff,
    split_file_diffs,
)
from markdown_diff_preview.interfaces.vcs import DiffText, DiffTextKind
from markdown_diff_preview.models.diff import DiffChangeType


@pytest.fixture
def parser() -> DiffParser:
    """Create a DiffParser instance."""
    return DiffParser()


class FakeDiffProvider:
    """DiffTextProvider returning a canned answer."""

    def __init__(self, result: DiffText | None) -> None:
        self.result = result
        self.calls: list[tuple[str, str]] = []

    def get_diff_text(self, file_path: str, base_ref: str) -> DiffText | None:
        self.calls.append((file_path, base_ref))
        return self.result


class TestDiffParserLines:
    """Tests for added and removed line bookkeeping."""

    def test_single_insertion(self, parser: DiffParser) -> None:
        """An inserted line between two context lines is the only addition."""
        diff = parser.parse("doc.md", "@@ -1,2 +1,3 @@\n a\n+b\n c\n")

        assert diff.added_lines == frozenset({2})
        assert diff.removed_lines == {}

    def test_single_deletion_keyed_at_next_line(self, parser: DiffParser) -> None:
        """A deleted line is shown before the context line that follows it."""
        diff = parser.parse("doc.md", "@@ -1,3 +1,2 @@\n a\n-b\n c\n")

        assert diff.added_lines == frozenset()
        assert diff.removed_lines == {2: "b"}

    def test_replacement(self, parser: DiffParser) -> None:
        """A replaced line is both added and has its old text attached."""
        diff = parser.parse("doc.md", "@@ -1 +1 @@\n-old\n+new\n")

        assert diff.added_lines == frozenset({1})
        assert diff.removed_lines == {1: "old"}

    def test_fixture_diff(self, parser: DiffParser, modified_diff: str) -> None:
        """Git headers before the first hunk are not content."""
        diff = parser.parse("docs/guide.md", modified_diff)

        assert diff.added_lines == frozenset({3})
        assert diff.removed_lines == {3: "Old intro paragraph."}
        assert len(diff.hunks) == 1
        assert not diff.is_new
        assert not diff.is_deleted

    def test_multiple_hunks(self, parser: DiffParser) -> None:
        """Line counters restart at each hunk header."""
        diff_text = "@@ -1,2 +1,2 @@\n a\n-b\n+B\n@@ -10,2 +10,3 @@\n x\n+y\n z\n"
        diff = parser.parse("doc.md", diff_text)

        assert diff.added_lines == frozenset({2, 11})
        assert diff.removed_lines == {2: "b"}
        assert [h.new_start for h in diff.hunks] == [1, 10]

    def test_run_of_removals_is_one_block(self, parser: DiffParser) -> None:
        """Consecutive removed lines are joined with newlines."""
        diff = parser.parse("doc.md", "@@ -1,4 +1,2 @@\n a\n-b\n-c\n d\n")

        assert diff.removed_lines == {2: "b\nc"}

    def test_zero_context_deletion(self, parser: DiffParser) -> None:
        """A hunk with no new lines keys its removal after the named line."""
        diff = parser.parse("doc.md", "@@ -3 +2,0 @@\n-c\n")

        assert diff.added_lines == frozenset()
        assert diff.removed_lines == {3: "c"}

    def test_zero_context_deletion_at_start(self, parser: DiffParser) -> None:
        """Deleting the first line keys the removal at line 1."""
        diff = parser.parse("doc.md", "@@ -1 +0,0 @@\n-a\n@@ -5 +4,0 @@\n-e\n")

        assert diff.removed_lines == {1: "a", 5: "e"}

    def test_added_lines_match_hunk_changes(self, parser: DiffParser) -> None:
        """added_lines holds exactly the ADDED change lines of every hunk."""
        diff_text = (
            "@@ -1,3 +1,4 @@\n a\n+b\n-c\n+C\n d\n"
            "@@ -8 +9,0 @@\n-h\n"
            "@@ -20,2 +20,3 @@\n+s\n t\n u\n"
        )
        diff = parser.parse("doc.md", diff_text)

        added = {
            change.line_number
            for hunk in diff.hunks
            for change in hunk.changes
            if change.type is DiffChangeType.ADDED
        }
        assert diff.added_lines == frozenset(added) == frozenset({2, 3, 20})
        assert diff.removed_lines == {3: "c", 10: "h"}

    def test_trailing_deletion(self, parser: DiffParser, deleted_tail_diff: str) -> None:
        """Deletions at end of file are keyed one past the last line."""
        diff = parser.parse("todo.md", deleted_tail_diff)

        assert diff.added_lines == frozenset()
        assert diff.removed_lines == {3: "- ship release\n- celebrate"}

    def test_no_newline_marker_ignored(self, parser: DiffParser) -> None:
        """Backslash lines are metadata, not content."""
        diff_text = "@@ -1 +1 @@\n-a\n\\ No newline at end of file\n+b\n\\ No newline at end of file\n"
        diff = parser.parse("doc.md", diff_text)

        assert diff.added_lines == frozenset({1})
        assert diff.removed_lines == {1: "a"}

    def test_dash_content_inside_hunk(self, parser: DiffParser) -> None:
        """Lines starting with --- inside a hunk are content."""
        diff_text = "@@ -1,2 +1,2 @@\n-old\n---- rule\n+new\n+---\n"
        diff = parser.parse("doc.md", diff_text)

        assert diff.added_lines == frozenset({1, 2})
        assert diff.removed_lines == {1: "old\n--- rule"}

    def test_empty_diff(self, parser: DiffParser) -> None:
        """Empty input yields an empty FileDiff."""
        diff = parser.parse("doc.md", "")

        assert diff.hunks == ()
        assert not diff.has_changes

    def test_garbage_before_hunk_is_skipped(self, parser: DiffParser) -> None:
        """Unrecognized lines are ignored rather than raising."""
        diff = parser.parse("doc.md", "not a diff line\n@@ -1 +1 @@\n-a\n+b\n")

        assert diff.added_lines == frozenset({1})

    def test_hunk_records_changes(self, parser: DiffParser) -> None:
        """Hunks keep typed changes with old and new line numbers."""
        diff = parser.parse("doc.md", "@@ -1,3 +1,3 @@\n a\n-b\n+B\n c\n")
        hunk = diff.hunks[0]

        assert [c.type for c in hunk.changes] == [
            DiffChangeType.CONTEXT,
            DiffChangeType.REMOVED,
            DiffChangeType.ADDED,
            DiffChangeType.CONTEXT,
        ]
        assert hunk.removed[0].old_line_number == 2
        assert hunk.added[0].line_number == 2


class TestDiffParserHeaders:
    """Tests for file-level header detection."""

    def test_new_file(self, parser: DiffParser, new_file_diff_text: str) -> None:
        """A /dev/null old side marks a new file."""
        diff = parser.parse("notes.md", new_file_diff_text)

        assert diff.is_new
        assert diff.added_lines == frozenset({1, 2, 3})
        assert diff.removed_lines == {}

    def test_deleted_file(self, parser: DiffParser) -> None:
        """A /dev/null new side marks a deleted file."""
        diff_text = "--- a/gone.md\n+++ /dev/null\n@@ -1,2 +0,0 @@\n-one\n-two\n"
        diff = parser.parse("gone.md", diff_text)

        assert diff.is_deleted
        assert diff.removed_lines == {1: "one\ntwo"}


class TestDiffStatistics:
    """Tests for FileDiff counters."""

    def test_counts(self, parser: DiffParser) -> None:
        """Blank removed lines are not counted."""
        diff = parser.parse("doc.md", "@@ -1,4 +1,2 @@\n a\n-b\n-\n+c\n")

        assert diff.added_count == 1
        assert diff.removed_count == 1
        assert diff.has_changes


class TestDiffHelpers:
    """Tests for module-level helpers."""

    def test_parse_diff_shared_parser(self, modified_diff: str) -> None:
        """parse_diff matches DiffParser.parse."""
        assert parse_diff("docs/guide.md", modified_diff) == DiffParser().parse(
            "docs/guide.md", modified_diff
        )

    def test_new_file_diff(self) -> None:
        """Untracked files have every line added."""
        diff = new_file_diff("draft.md", 3)

        assert diff.is_new
        assert diff.added_lines == frozenset({1, 2, 3})

    def test_empty_file_diff(self) -> None:
        """Unchanged files carry no decorations."""
        diff = empty_file_diff("readme.md")

        assert diff.file_path == "readme.md"
        assert not diff.has_changes

    def test_extract_new_file_content(self, modified_diff: str) -> None:
        """Context and added lines rebuild the new file."""
        assert extract_new_file_content(modified_diff) == "# Guide\n\nNew intro paragraph.\n\n- item one"

    def test_split_file_diffs(self, multi_file_diff: str) -> None:
        """Each file's section is keyed by its new path."""
        files = split_file_diffs(multi_file_diff)

        assert list(files) == ["docs/guide.md", "notes.md"]
        assert files["notes.md"].startswith("diff --git a/notes.md")
        assert parse_diff("notes.md", files["notes.md"]).is_new

    def test_split_empty(self) -> None:
        """No file sections yields an empty mapping."""
        assert split_file_diffs("") == {}


class TestBuildFileDiff:
    """Tests for build_file_diff with a fake provider."""

    def test_unavailable(self) -> None:
        """A provider that cannot answer yields None."""
        provider = FakeDiffProvider(None)

        assert build_file_diff(provider, "doc.md", "HEAD", 5) is None
        assert provider.calls == [("doc.md", "HEAD")]

    def test_untracked(self) -> None:
        """Untracked files become all-added diffs."""
        provider = FakeDiffProvider(DiffText(DiffTextKind.NEW_FILE))
        diff = build_file_diff(provider, "doc.md", "HEAD", 2)

        assert diff is not None
        assert diff.is_new
        assert diff.added_lines == frozenset({1, 2})

    def test_no_changes(self) -> None:
        """Unchanged files have no decorations."""
        provider = FakeDiffProvider(DiffText(DiffTextKind.NO_CHANGES))
        diff = build_file_diff(provider, "doc.md", "HEAD", 2)

        assert diff is not None
        assert not diff.has_changes

    def test_changed(self) -> None:
        """Diff text is parsed."""
        provider = FakeDiffProvider(DiffText(DiffTextKind.CHANGED, "@@ -1 +1 @@\n-a\n+b\n"))
        diff = build_file_diff(provider, "doc.md", "main", 1)

        assert diff is not None
        assert diff.added_lines == frozenset({1})
        assert provider.calls == [("doc.md", "main")]
