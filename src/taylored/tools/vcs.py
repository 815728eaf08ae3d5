"""Minimal git helpers
The helpers below provide just enough structure to check the working tree,
juggle disposable branches and compute ref-to-ref diffs with git's exit-code
contract.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence, Set


class GitError(RuntimeError):
    """Raised when a git command fails or the repository cannot be used."""

    def __init__(self, message: str, *, command: Sequence[str] | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.command: tuple[str, ...] = tuple(command or ())
        self.stderr = stderr


@dataclass(slots=True)
class DiffOutcome:
    """Result of ``git diff --exit-code`` between two refs."""

    text: str
    returncode: int

    @property
    def has_changes(self) -> bool:
        return self.returncode == 1


class GitRepository:
    """Lightweight wrapper around ``git`` commands."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).resolve()
        if not (self.root / ".git").exists():
            raise GitError(f"Not a git repository: {self.root}")

    @classmethod
    def discover(cls, start: Path | str | None = None) -> "GitRepository":
        """Locate the nearest git repository starting from ``start``."""

        path = Path(start or Path.cwd()).resolve()
        for candidate in (path, *path.parents):
            if (candidate / ".git").exists():
                return cls(candidate)
        raise GitError(f"Unable to locate a git repository from {path}")

    @classmethod
    def initialise(cls, root: Path | str, *, initial_branch: str = "main") -> "GitRepository":
        """Initialise a new git repository at ``root`` with an initial commit."""

        path = Path(root).resolve()
        path.mkdir(parents=True, exist_ok=True)
        _run_git_command(["init", "-b", initial_branch], cwd=path)

        def _ensure_config(key: str, value: str) -> None:
            configured = _run_git_command(["config", "--get", key], cwd=path, check=False)
            if configured.returncode != 0 or not configured.stdout.strip():
                _run_git_command(["config", key, value], cwd=path)

        _ensure_config("user.email", "taylored@example.com")
        _ensure_config("user.name", "Taylored")
        _run_git_command(["config", "commit.gpgsign", "false"], cwd=path)

        _run_git_command(["add", "."], cwd=path)
        _run_git_command(["commit", "--allow-empty", "--no-verify", "-m", "Initial commit"], cwd=path)

        return cls(path)

    # ------------------------------------------------------------------ git IO
    def _run_git(self, args: Sequence[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        return _run_git_command(args, cwd=self.root, check=check)

    def git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Execute ``git`` with ``args`` relative to the repository root."""

        return self._run_git(list(args), check=check)

    # -------------------------------------------------------------- branches
    def current_branch(self) -> str | None:
        """Return the current branch name or ``None`` when detached."""

        result = self._run_git(["symbolic-ref", "--quiet", "--short", "HEAD"], check=False)
        if result.returncode != 0:
            return None
        branch = result.stdout.strip()
        return branch or None

    def head_commit(self) -> str:
        """Return the commit SHA checked out at ``HEAD``."""

        return self._run_git(["rev-parse", "--verify", "HEAD"]).stdout.strip()

    def current_ref(self) -> str:
        """Return the branch name, or the commit SHA when ``HEAD`` is detached."""

        return self.current_branch() or self.head_commit()

    def ref_exists(self, ref: str) -> bool:
        """Return ``True`` when ``ref`` resolves to a commit."""

        result = self._run_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], check=False)
        return result.returncode == 0

    def branch_exists(self, name: str) -> bool:
        """Return ``True`` when a local branch called ``name`` exists."""

        result = self._run_git(["rev-parse", "--verify", "--quiet", f"refs/heads/{name}"], check=False)
        return result.returncode == 0

    def list_branches(self, pattern: str = "*") -> List[str]:
        """Return local branch names matching the ``for-each-ref`` glob ``pattern``."""

        result = self._run_git(["for-each-ref", "--format=%(refname:short)", f"refs/heads/{pattern}"])
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def create_branch(self, name: str, *, start: str | None = None, checkout: bool = True) -> None:
        """Create ``name`` from ``start`` (default ``HEAD``) and optionally check it out."""

        args: List[str] = ["checkout", "-b", name] if checkout else ["branch", name]
        if start:
            args.append(start)
        self._run_git(args)

    def checkout(self, ref: str, *, force: bool = False) -> None:
        """Check out ``ref``; ``force`` discards local modifications."""

        args: List[str] = ["checkout"]
        if force:
            args.append("--force")
        args.append(ref)
        self._run_git(args)

    def delete_branch(self, name: str, *, force: bool = True) -> None:
        """Delete the local branch ``name``."""

        self._run_git(["branch", "-D" if force else "-d", name])

    # ------------------------------------------------------------- repo status
    def _status_entries(self) -> List[tuple[str, Path]]:
        result = self._run_git(["status", "--porcelain", "--untracked-files=all"], check=True)
        entries: List[tuple[str, Path]] = []
        for line in result.stdout.splitlines():
            if not line:
                continue
            status = line[:2]
            raw_path = line[3:]
            if status[0] in {"R", "C"} and " -> " in raw_path:
                raw_path = raw_path.split(" -> ", 1)[1]
            raw_path = raw_path.strip()
            if raw_path.startswith('"') and raw_path.endswith('"'):
                raw_path = raw_path[1:-1]
            status_clean = status.strip() or status
            entries.append((status_clean, Path(raw_path)))
        return entries

    def working_tree_changes(
        self,
        *,
        include_untracked: bool = True,
        exclude: Iterable[str | Path] = (),
    ) -> List[Path]:
        """Return the set of paths with pending modifications.

        Paths located under any entry of ``exclude`` are ignored; the patch
        storage directory is excluded this way by the synthesis drivers.
        """

        excluded = [Path(item) for item in exclude]
        paths: Set[Path] = set()
        for status, path in self._status_entries():
            if status == "??" and not include_untracked:
                continue
            if any(_is_within(path, prefix) for prefix in excluded):
                continue
            paths.add(path)
        return sorted(paths, key=lambda item: item.as_posix())

    def is_clean(self, *, include_untracked: bool = True, exclude: Iterable[str | Path] = ()) -> bool:
        """Return ``True`` when the working tree has no pending changes."""

        return not self.working_tree_changes(include_untracked=include_untracked, exclude=exclude)

    def ensure_clean(self, *, include_untracked: bool = True, exclude: Iterable[str | Path] = ()) -> None:
        """Raise :class:`GitError` if the working tree is not clean."""

        pending = self.working_tree_changes(include_untracked=include_untracked, exclude=exclude)
        if pending:
            listed = ", ".join(path.as_posix() for path in pending[:5])
            suffix = "" if len(pending) <= 5 else f" (+{len(pending) - 5} more)"
            raise GitError(
                f"Working tree has pending changes: {listed}{suffix}",
                command=("git", "status", "--porcelain"),
            )

    def discard_changes(self, *, exclude: Iterable[str | Path] = ()) -> None:
        """Restore tracked files to ``HEAD`` and remove untracked files.

        Paths under ``exclude`` are left alone, tracked or not, staged or not;
        ignored files are never touched.
        """

        pathspec = ["."]
        pathspec.extend(f":(exclude){Path(item).as_posix()}" for item in exclude)
        self._run_git(["reset", "--quiet", "HEAD", "--", *pathspec])
        self._run_git(["checkout", "--", *pathspec])
        self._run_git(["clean", "-fd", "--quiet", "--", *pathspec])

    # ----------------------------------------------------------------- commits
    def stage(self, *paths: str | Path) -> None:
        """Stage additions, modifications and deletions of ``paths``."""

        if not paths:
            raise GitError("stage() requires at least one path")
        self._run_git(["add", "--all", "--", *(Path(path).as_posix() for path in paths)])

    def commit(self, message: str, *, allow_empty: bool = False, no_verify: bool = True) -> str:
        """Commit the staged index and return the new commit SHA."""

        args: List[str] = ["commit", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        if no_verify:
            args.append("--no-verify")
        self._run_git(args)
        return self.head_commit()

    # ----------------------------------------------------------- diff helpers
    def diff_refs(self, from_ref: str, to_ref: str, *paths: str | Path) -> DiffOutcome:
        """Diff ``from_ref`` against ``to_ref`` honouring ``--exit-code``.

        Exit status 0 means no textual difference and 1 means a diff was
        produced; anything else raises :class:`GitError`.
        """

        args: List[str] = ["diff", "--exit-code", from_ref, to_ref]
        if paths:
            args.extend(["--", *(Path(path).as_posix() for path in paths)])
        result = self._run_git(args, check=False)
        if result.returncode == 0:
            return DiffOutcome(text="", returncode=0)
        if result.returncode == 1:
            return DiffOutcome(text=result.stdout, returncode=1)
        message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
        raise GitError(
            f"git {' '.join(args)} failed with exit code {result.returncode}: {message}",
            command=result.args,
            stderr=result.stderr,
        )

    def show_file(self, ref: str, path: str | Path) -> str | None:
        """Return the content of ``path`` at ``ref`` or ``None`` when absent there."""

        if not self.ref_exists(ref):
            raise GitError(f"Unknown git ref: {ref}", command=("git", "rev-parse", ref))
        object_name = f"{ref}:{Path(path).as_posix()}"
        exists = self._run_git(["cat-file", "-e", object_name], check=False)
        if exists.returncode != 0:
            return None
        return self._run_git(["show", object_name]).stdout

    def apply(self, patch_path: Path | str, *, reverse: bool = False, check: bool = False) -> subprocess.CompletedProcess[str]:
        """Run ``git apply`` for ``patch_path`` raising :class:`GitError` on failure."""

        args: List[str] = ["apply"]
        if check:
            args.append("--check")
        if reverse:
            args.append("--reverse")
        args.extend(["--whitespace=nowarn", str(patch_path)])
        return self._run_git(args)


def _run_git_command(
    args: Sequence[str],
    *,
    cwd: Path,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    command = ["git", *args]
    process = subprocess.run(  # noqa: S603 - command constructed from known values
        command,
        cwd=cwd,
        capture_output=True,
        text=False,
        check=False,
    )
    stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
    stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
    result = subprocess.CompletedProcess(process.args, process.returncode, stdout, stderr)
    if check and result.returncode != 0:
        message = result.stderr.strip() or result.stdout.strip() or "unknown git error"
        raise GitError(f"git {' '.join(args)} failed: {message}", command=command, stderr=result.stderr)
    return result


def _is_within(path: Path, prefix: Path) -> bool:
    return path == prefix or prefix in path.parents


__all__ = ["DiffOutcome", "GitError", "GitRepository"]
