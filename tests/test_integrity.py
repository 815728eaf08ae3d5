from __future__ import annotations

from pathlib import Path

from taylored.patching.diff import parse_patch
from taylored.patching.integrity import (
    FileCase,
    IntegrityStatus,
    PatchUpgrader,
    identify_blocks,
    render_report,
)
from taylored.patching.model import ChangeKind

FOO_PATCH = (
    "diff --git a/a.txt b/a.txt\n"
    "index 1111111..2222222 100644\n"
    "--- a/a.txt\n"
    "+++ b/a.txt\n"
    "@@ -1,4 +1,5 @@\n"
    " line1\n"
    " START\n"
    "+foo\n"
    " END\n"
    " line4\n"
)


def _write(root: Path, relative: str, content: str) -> Path:
    target = root / relative
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return target


def _store(root: Path, content: str) -> Path:
    return _write(root, ".taylored/feature.taylored", content)


def test_identify_blocks_replays_line_counters() -> None:
    blocks, rejected = identify_blocks(parse_patch(FOO_PATCH).files[0])

    assert rejected == []
    (block,) = blocks
    assert block.kind is ChangeKind.ADD
    assert block.start_line == 3
    assert block.top_frame is not None and block.top_frame.content == "START"
    assert (block.top_frame.old_line_number, block.top_frame.new_line_number) == (2, 2)
    assert block.bottom_frame is not None and block.bottom_frame.content == "END"
    assert (block.bottom_frame.old_line_number, block.bottom_frame.new_line_number) == (3, 4)


def test_changed_block_content_is_refreshed(tmp_path: Path) -> None:
    _write(tmp_path, "a.txt", "line1\nSTART\nbar\nEND\nline4\n")
    patch_path = _store(tmp_path, FOO_PATCH)

    result = PatchUpgrader(tmp_path).upgrade_file(patch_path)

    assert result.status is IntegrityStatus.INTACT
    assert result.written
    assert patch_path.read_text(encoding="utf-8") == FOO_PATCH.replace("+foo\n", "+bar\n")
    assert result.backup is not None
    assert result.backup.read_text(encoding="utf-8") == FOO_PATCH


def test_up_to_date_patch_is_left_alone(tmp_path: Path) -> None:
    _write(tmp_path, "a.txt", "line1\nSTART\nfoo\nEND\nline4\n")
    patch_path = _store(tmp_path, FOO_PATCH)

    result = PatchUpgrader(tmp_path).upgrade_file(patch_path)

    assert result.intact
    assert not result.updated
    assert not result.written
    assert not (tmp_path / ".taylored" / "feature.taylored.backup").exists()


def test_drifted_block_shifts_hunk_header(tmp_path: Path) -> None:
    _write(tmp_path, "a.txt", "line0\nline1\nSTART\nfoo\nEND\nline4\n")
    patch_path = _store(tmp_path, FOO_PATCH)

    result = PatchUpgrader(tmp_path).upgrade_file(patch_path)

    assert result.intact
    assert result.files[0].checks[0].drift == 1
    assert "@@ -2,4 +2,5 @@" in patch_path.read_text(encoding="utf-8")


def test_broken_frame_marks_corrupted_without_writing(tmp_path: Path) -> None:
    _write(tmp_path, "a.txt", "line1\nCHANGED\nfoo\nEND\nline4\n")
    patch_path = _store(tmp_path, FOO_PATCH)

    result = PatchUpgrader(tmp_path).upgrade_file(patch_path)

    assert result.status is IntegrityStatus.CORRUPTED
    assert not result.written
    assert patch_path.read_text(encoding="utf-8") == FOO_PATCH
    rendered = render_report(result)
    assert "Overall: CORRUPTED" in rendered
    assert "Top Frame" in rendered and "MISMATCH" in rendered


def test_mixed_block_is_rejected(tmp_path: Path) -> None:
    text = (
        "--- a/a.txt\n"
        "+++ b/a.txt\n"
        "@@ -1,3 +1,3 @@\n"
        " START\n"
        "-old\n"
        "+new\n"
        " END\n"
    )
    _write(tmp_path, "a.txt", "START\nnew\nEND\n")
    patch_path = _store(tmp_path, text)

    result = PatchUpgrader(tmp_path).upgrade_file(patch_path)

    assert not result.intact
    assert result.files[0].rejected
    assert patch_path.read_text(encoding="utf-8") == text


def test_missing_target_is_corrupted(tmp_path: Path) -> None:
    result = PatchUpgrader(tmp_path).upgrade_text(FOO_PATCH)

    assert result.status is IntegrityStatus.CORRUPTED
    assert "not found" in result.files[0].message


DELETE_PATCH = (
    "--- a/a.txt\n"
    "+++ b/a.txt\n"
    "@@ -1,5 +1,4 @@\n"
    " line1\n"
    " START\n"
    "-foo\n"
    " END\n"
    " line4\n"
)


def test_delete_block_frames_use_old_side_lines() -> None:
    blocks, rejected = identify_blocks(parse_patch(DELETE_PATCH).files[0])

    assert rejected == []
    (block,) = blocks
    assert block.kind is ChangeKind.DELETE
    assert block.top_frame is not None
    assert (block.top_frame.old_line_number, block.top_frame.new_line_number) == (2, 2)
    assert block.bottom_frame is not None
    assert (block.bottom_frame.old_line_number, block.bottom_frame.new_line_number) == (4, 3)


def test_drifted_delete_block_is_refreshed(tmp_path: Path) -> None:
    _write(tmp_path, "a.txt", "line0\nline1\nSTART\nbar\nEND\nline4\n")
    patch_path = _store(tmp_path, DELETE_PATCH)

    result = PatchUpgrader(tmp_path).upgrade_file(patch_path)

    assert result.intact
    assert result.files[0].checks[0].drift == 1
    assert patch_path.read_text(encoding="utf-8") == (
        DELETE_PATCH.replace("@@ -1,5 +1,4 @@", "@@ -2,5 +2,4 @@").replace("-foo\n", "-bar\n")
    )
    assert result.backup is not None


def test_delete_block_with_broken_frame_is_corrupted(tmp_path: Path) -> None:
    _write(tmp_path, "a.txt", "line1\nSTART\nfoo\nCHANGED\nline4\n")
    patch_path = _store(tmp_path, DELETE_PATCH)

    result = PatchUpgrader(tmp_path).upgrade_file(patch_path)

    assert result.status is IntegrityStatus.CORRUPTED
    assert patch_path.read_text(encoding="utf-8") == DELETE_PATCH


DELETE_FILE_PATCH = (
    "diff --git a/gone.txt b/gone.txt\n"
    "deleted file mode 100644\n"
    "index 4444444..0000000\n"
    "--- a/gone.txt\n"
    "+++ /dev/null\n"
    "@@ -1,2 +0,0 @@\n"
    "-one\n"
    "-two\n"
)


def test_file_deletion_is_intact_only_when_target_absent(tmp_path: Path) -> None:
    upgrader = PatchUpgrader(tmp_path)

    absent = upgrader.upgrade_text(DELETE_FILE_PATCH)
    assert absent.intact
    assert absent.files[0].case is FileCase.DELETION
    assert absent.text == DELETE_FILE_PATCH

    _write(tmp_path, "gone.txt", "one\ntwo\n")
    present = upgrader.upgrade_text(DELETE_FILE_PATCH)
    assert present.status is IntegrityStatus.CORRUPTED


def test_new_file_patch_is_rebuilt_from_live_content(tmp_path: Path) -> None:
    text = (
        "diff --git a/new.txt b/new.txt\n"
        "new file mode 100644\n"
        "index 0000000..3333333\n"
        "--- /dev/null\n"
        "+++ b/new.txt\n"
        "@@ -0,0 +1,2 @@\n"
        "+one\n"
        "+two\n"
    )
    _write(tmp_path, "new.txt", "uno\ndos\ntres")

    result = PatchUpgrader(tmp_path).upgrade_text(text)

    assert result.intact
    assert result.files[0].case is FileCase.NEW_FILE
    assert result.text.endswith(
        "@@ -0,0 +1,3 @@\n+uno\n+dos\n+tres\n\\ No newline at end of file\n"
    )


def test_upgrade_reads_from_ref(sandbox) -> None:
    sandbox.commit({"a.txt": "line1\nSTART\nbaz\nEND\nline4\n"})
    sandbox.write("a.txt", "unrelated working tree content\n")

    result = PatchUpgrader(sandbox.root, ref="main").upgrade_text(FOO_PATCH)

    assert result.intact
    assert "+baz\n" in result.text


def test_hunkless_entry_with_spaces_in_path_is_reported(tmp_path: Path) -> None:
    text = (
        "diff --git a/my file.txt b/my file.txt\n"
        "new file mode 100644\n"
        "index 0000000..e69de29\n"
    )
    _write(tmp_path, "my file.txt", "")

    result = PatchUpgrader(tmp_path).upgrade_text(text)

    assert result.files[0].path == "my file.txt"
    assert result.intact
