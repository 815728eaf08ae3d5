from __future__ import annotations

import pytest

from taylored.patching.diff import DiffEventKind, parse_patch, serialize_patch, tokenize_diff
from taylored.patching.errors import PatchParseError
from taylored.patching.model import ChangeKind, Hunk

GIT_DIFF = (
    "diff --git a/app.txt b/app.txt\n"
    "index 1111111..2222222 100644\n"
    "--- a/app.txt\n"
    "+++ b/app.txt\n"
    "@@ -1,3 +1,4 @@ header\n"
    " alpha\n"
    "+inserted\n"
    " beta\n"
    " gamma\n"
)


def test_parse_git_diff_extracts_paths_and_hunks() -> None:
    patch = parse_patch(GIT_DIFF)

    assert len(patch.files) == 1
    file_diff = patch.files[0]
    assert file_diff.old_path == "app.txt"
    assert file_diff.new_path == "app.txt"
    assert file_diff.headers == ["diff --git a/app.txt b/app.txt", "index 1111111..2222222 100644"]

    hunk = file_diff.hunks[0]
    assert (hunk.old_start, hunk.old_lines, hunk.new_start, hunk.new_lines) == (1, 3, 1, 4)
    assert hunk.section == " header"
    assert [change.kind for change in hunk.changes] == [
        ChangeKind.CONTEXT,
        ChangeKind.ADD,
        ChangeKind.CONTEXT,
        ChangeKind.CONTEXT,
    ]
    assert hunk.is_consistent()
    assert patch.additions == 1
    assert patch.deletions == 0


def test_serialize_reproduces_git_output() -> None:
    assert serialize_patch(parse_patch(GIT_DIFF)) == GIT_DIFF


def test_deleted_line_that_looks_like_a_header_stays_a_deletion() -> None:
    text = (
        "--- a/notes.md\n"
        "+++ b/notes.md\n"
        "@@ -1,2 +1 @@\n"
        "-- item\n"
        " keep\n"
    )

    patch = parse_patch(text)

    assert len(patch.files) == 1
    hunk = patch.files[0].hunks[0]
    assert hunk.changes[0].kind is ChangeKind.DELETE
    assert hunk.changes[0].text == "- item"
    assert hunk.new_lines == 1
    assert serialize_patch(patch) == text


def test_new_and_deleted_files_use_none_paths() -> None:
    text = (
        "diff --git a/new.txt b/new.txt\n"
        "new file mode 100644\n"
        "index 0000000..3333333\n"
        "--- /dev/null\n"
        "+++ b/new.txt\n"
        "@@ -0,0 +1,2 @@\n"
        "+one\n"
        "+two\n"
        "diff --git a/old.txt b/old.txt\n"
        "deleted file mode 100644\n"
        "index 4444444..0000000\n"
        "--- a/old.txt\n"
        "+++ /dev/null\n"
        "@@ -1 +0,0 @@\n"
        "-gone\n"
    )

    patch = parse_patch(text)

    created, deleted = patch.files
    assert created.is_new_file and created.old_path is None and created.new_path == "new.txt"
    assert deleted.is_deleted_file and deleted.new_path is None and deleted.target_path == "old.txt"
    assert patch.target_paths() == ["new.txt", "old.txt"]
    assert serialize_patch(patch) == text


def test_git_header_paths_may_contain_spaces() -> None:
    text = (
        "diff --git a/my file.txt b/my file.txt\n"
        "new file mode 100644\n"
        "index 0000000..e69de29\n"
        "diff --git a/old name.txt b/new name.txt\n"
        "similarity index 100%\n"
        "rename from old name.txt\n"
        "rename to new name.txt\n"
    )

    created, renamed = parse_patch(text).files

    assert (created.old_path, created.new_path) == (None, "my file.txt")
    assert created.target_path == "my file.txt"
    assert created.hunks == []
    assert (renamed.old_path, renamed.new_path) == ("old name.txt", "new name.txt")
    assert serialize_patch(parse_patch(text)) == text


def test_no_newline_marker_attaches_to_previous_change() -> None:
    text = (
        "--- a/end.txt\n"
        "+++ b/end.txt\n"
        "@@ -1 +1,2 @@\n"
        " first\n"
        "+last\n"
        "\\ No newline at end of file\n"
    )

    patch = parse_patch(text)

    assert patch.files[0].hunks[0].changes[-1].no_newline is True
    assert serialize_patch(patch) == text


def test_binary_entries_are_skipped() -> None:
    text = (
        "diff --git a/logo.png b/logo.png\n"
        "index 5555555..6666666 100644\n"
        "Binary files a/logo.png and b/logo.png differ\n"
    ) + GIT_DIFF

    patch = parse_patch(text)

    assert patch.skipped_binary == ["logo.png"]
    assert [item.target_path for item in patch.files] == ["app.txt"]


def test_tokenizer_reports_events_with_line_numbers() -> None:
    events = list(tokenize_diff("Subject: [PATCH] demo\n\n" + GIT_DIFF))

    assert events[0].kind is DiffEventKind.PREAMBLE
    hunk_event = next(event for event in events if event.kind is DiffEventKind.HUNK_HEADER)
    assert hunk_event.ranges == (1, 3, 1, 4)
    assert hunk_event.line_number == 7


def test_malformed_hunk_header_raises() -> None:
    with pytest.raises(PatchParseError):
        parse_patch("--- a/x\n+++ b/x\n@@ -a +1 @@\n+x\n")


def test_truncated_hunk_raises() -> None:
    with pytest.raises(PatchParseError) as excinfo:
        parse_patch("--- a/x\n+++ b/x\n@@ -1,2 +1,3 @@\n one\n+two\n")

    assert excinfo.value.details["hunk_line"] == 3


def test_hunk_header_omits_count_of_one() -> None:
    assert Hunk(4, 1, 4, 2).header() == "@@ -4 +4,2 @@"
    assert Hunk(0, 0, 1, 1).header() == "@@ -0,0 +1 @@"


def test_empty_text_parses_to_empty_patch() -> None:
    patch = parse_patch("")

    assert patch.files == []
    assert serialize_patch(patch) == ""
