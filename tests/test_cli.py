from __future__ import annotations

from typer.testing import CliRunner

from taylored.cli import app

runner = CliRunner()


def _invoke(sandbox, *args: str):
    return runner.invoke(app, [*args, "--repo", str(sandbox.root)], catch_exceptions=False)


def test_list_without_patches(sandbox) -> None:
    result = _invoke(sandbox, "list")

    assert result.exit_code == 0, result.output
    assert "No patches stored." in result.output


def test_save_add_remove_cycle(sandbox) -> None:
    sandbox.commit({"app.txt": "X\nY\n"})
    sandbox.git("checkout", "-b", "feature")
    sandbox.commit({"app.txt": "X\nhello\nY\n"})
    sandbox.git("checkout", "main")

    saved = _invoke(sandbox, "save", "feature")
    assert saved.exit_code == 0, saved.output
    assert "feature.taylored" in saved.output

    listed = _invoke(sandbox, "list")
    assert "feature.taylored" in listed.output

    verified = _invoke(sandbox, "verify-add", "feature")
    assert verified.exit_code == 0, verified.output
    assert sandbox.read("app.txt") == "X\nY\n"

    added = _invoke(sandbox, "add", "feature")
    assert added.exit_code == 0, added.output
    assert sandbox.read("app.txt") == "X\nhello\nY\n"

    assert _invoke(sandbox, "verify-remove", "feature").exit_code == 0
    removed = _invoke(sandbox, "remove", "feature")
    assert removed.exit_code == 0, removed.output
    assert sandbox.read("app.txt") == "X\nY\n"


def test_add_missing_patch_fails(sandbox) -> None:
    result = _invoke(sandbox, "add", "missing")

    assert result.exit_code == 1


def test_upgrade_reports_status(sandbox) -> None:
    sandbox.commit({"a.txt": "START\nbar\nEND\n"})
    sandbox.write(
        ".taylored/block.taylored",
        "--- a/a.txt\n+++ b/a.txt\n@@ -1,2 +1,3 @@\n START\n+foo\n END\n",
    )

    result = _invoke(sandbox, "upgrade", "block")

    assert result.exit_code == 0, result.output
    assert "Overall: INTACT" in result.output
    assert "+bar" in sandbox.read(".taylored/block.taylored")


def test_upgrade_corrupted_exits_non_zero(sandbox) -> None:
    sandbox.commit({"a.txt": "nothing\n"})
    sandbox.write(
        ".taylored/block.taylored",
        "--- a/a.txt\n+++ b/a.txt\n@@ -1,2 +1,3 @@\n START\n+foo\n END\n",
    )

    result = _invoke(sandbox, "upgrade", "block")

    assert result.exit_code == 1
    assert "CORRUPTED" in result.output


def test_offset_with_message(sandbox) -> None:
    sandbox.write(".taylored/note.taylored", "Subject: [PATCH] old\n\n")

    result = _invoke(sandbox, "offset", "note", "--message", "fresh")

    assert result.exit_code == 0, result.output
    assert "message-refreshed" in result.output
    assert sandbox.read(".taylored/note.taylored") == "Subject: [PATCH] fresh\n\n"


def test_automatic_creates_patches(sandbox) -> None:
    sandbox.commit({"a.py": '# <taylored number="1">\none\n# </taylored>\n'})

    result = _invoke(sandbox, "automatic", "py")

    assert result.exit_code == 0, result.output
    assert "Created .taylored/1.taylored" in result.output


def test_invalid_config_fails(sandbox) -> None:
    (sandbox.root / "bad.yaml").write_text("max_workers: 0\n", encoding="utf-8")

    result = _invoke(sandbox, "list", "--config", "bad.yaml")

    assert result.exit_code == 1
