from __future__ import annotations

import pytest

from taylored.tools.vcs import GitError, GitRepository


def test_initialise_creates_main_with_commit(sandbox) -> None:
    assert sandbox.repo.current_branch() == "main"
    assert sandbox.repo.ref_exists("main")
    assert not sandbox.repo.ref_exists("does-not-exist")


def test_discover_walks_up(sandbox) -> None:
    nested = sandbox.root / "pkg" / "deep"
    nested.mkdir(parents=True)

    assert GitRepository.discover(nested).root == sandbox.root


def test_diff_refs_exit_code_contract(sandbox) -> None:
    first = sandbox.commit({"a.txt": "one\n"})
    second = sandbox.commit({"a.txt": "one\ntwo\n"})

    same = sandbox.repo.diff_refs(second, second)
    assert same.returncode == 0 and same.text == "" and not same.has_changes

    changed = sandbox.repo.diff_refs(first, second, "a.txt")
    assert changed.has_changes
    assert "+two" in changed.text

    with pytest.raises(GitError):
        sandbox.repo.diff_refs("missing-ref", second)


def test_show_file(sandbox) -> None:
    sandbox.commit({"a.txt": "one\n"})

    assert sandbox.repo.show_file("main", "a.txt") == "one\n"
    assert sandbox.repo.show_file("main", "absent.txt") is None
    with pytest.raises(GitError):
        sandbox.repo.show_file("nope", "a.txt")


def test_working_tree_changes_honours_exclude(sandbox) -> None:
    sandbox.write(".taylored/1.taylored", "patch\n")
    assert sandbox.repo.is_clean(exclude=[".taylored"])

    sandbox.write("dirty.txt", "x\n")
    with pytest.raises(GitError) as excinfo:
        sandbox.repo.ensure_clean(exclude=[".taylored"])
    assert "dirty.txt" in str(excinfo.value)


def test_discard_changes_keeps_excluded_paths(sandbox) -> None:
    sandbox.commit({"a.txt": "one\n"})
    sandbox.write("a.txt", "changed\n")
    sandbox.write("scratch.txt", "temp\n")
    sandbox.write(".taylored/keep.taylored", "patch\n")

    sandbox.repo.discard_changes(exclude=[".taylored"])

    assert sandbox.read("a.txt") == "one\n"
    assert not (sandbox.root / "scratch.txt").exists()
    assert (sandbox.root / ".taylored" / "keep.taylored").exists()


def test_discard_changes_keeps_tracked_excluded_edits(sandbox) -> None:
    sandbox.commit({"a.txt": "one\n", ".taylored/keep.taylored": "v1\n"})
    sandbox.write("a.txt", "changed\n")
    sandbox.write(".taylored/keep.taylored", "v2\n")
    sandbox.repo.stage("a.txt")

    sandbox.repo.discard_changes(exclude=[".taylored"])

    assert sandbox.read("a.txt") == "one\n"
    assert sandbox.read(".taylored/keep.taylored") == "v2\n"
    assert sandbox.repo.is_clean(exclude=[".taylored"])


def test_commit_returns_sha_and_allows_empty(sandbox) -> None:
    head = sandbox.repo.head_commit()

    new_head = sandbox.repo.commit("empty", allow_empty=True)

    assert new_head != head
    assert sandbox.repo.head_commit() == new_head
