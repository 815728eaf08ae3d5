"""Compute the diff a mutation would introduce without touching the caller's checkout."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from ..config import TayloredSettings
from ..constants import AUTO_COMMIT_PREFIX
from ..telemetry import emit_event
from ..tools.isolation import isolated_branch, repository_lock
from ..tools.scanner import read_text_file, write_text_file
from ..tools.scripts import run_script
from ..tools.vcs import GitError, GitRepository
from .blocks import ParsedBlock, remove_block_text, replace_block_text
from .patchfile import (
    WriteOutcome,
    block_patch_name,
    branch_patch_name,
    patch_directory,
    write_new_patch,
    write_with_backup,
)
from .purity import ensure_pure

LOGGER = logging.getLogger(__name__)

Mutation = Callable[[Path], None]


@dataclass(slots=True)
class CaptureResult:
    """Diff produced for one unit by the isolated-branch protocol."""

    unit_id: str
    diff: str
    baseline: str
    paths: tuple[str, ...]
    branch: str

    @property
    def is_empty(self) -> bool:
        return not self.diff


class DiffSynthesizer:
    """Drive isolated-branch captures against one repository.

    Every capture holds the repository lock from branch creation until the
    original checkout is restored, so captures issued from several threads
    are serialised while the work done outside (script runs) overlaps.
    """

    def __init__(
        self,
        repo: GitRepository,
        *,
        settings: TayloredSettings | None = None,
        lock: threading.Lock | None = None,
    ) -> None:
        self.repo = repo
        self.settings = settings or TayloredSettings()
        self.lock = lock or repository_lock(repo.root)

    # ---------------------------------------------------------------- protocol
    def capture(
        self,
        unit_id: str | int,
        paths: Sequence[str | Path],
        mutate: Mutation,
        *,
        baseline: str | None = None,
        towards_baseline: bool = False,
        message: str | None = None,
        prefix: str | None = None,
    ) -> CaptureResult:
        """Apply ``mutate`` on a disposable branch and diff it against ``baseline``.

        By default the diff goes from ``baseline`` to the mutated commit.  With
        ``towards_baseline`` it goes the other way, which renders a removal
        performed by ``mutate`` as an addition.
        """

        if not paths:
            raise ValueError("capture() needs at least one path to stage")
        base = baseline or self.settings.base_branch
        if not self.repo.ref_exists(base):
            raise GitError(f"Baseline ref '{base}' does not exist", command=("git", "rev-parse", base))

        relative = tuple(Path(path).as_posix() for path in paths)
        label = message or f"capture {unit_id}"
        with isolated_branch(
            self.repo,
            prefix=prefix or self.settings.branch_prefix,
            unit_id=unit_id,
            lock=self.lock,
        ) as branch:
            mutate(self.repo.root)
            self.repo.stage(*relative)
            commit = self.repo.commit(f"{AUTO_COMMIT_PREFIX} {label}", allow_empty=True)
            if towards_baseline:
                outcome = self.repo.diff_refs(commit, base, *relative)
            else:
                outcome = self.repo.diff_refs(base, commit, *relative)

        emit_event(
            "synthesis.completed",
            unit=str(unit_id),
            paths=relative,
            baseline=base,
            has_changes=outcome.has_changes,
            bytes=len(outcome.text),
        )
        return CaptureResult(
            unit_id=str(unit_id),
            diff=outcome.text,
            baseline=base,
            paths=relative,
            branch=branch.name,
        )

    # ------------------------------------------------------------ block units
    def capture_static_block(self, block: ParsedBlock, *, baseline: str | None = None) -> CaptureResult:
        """Capture ``block`` as a pure addition relative to a tree without it."""

        file_path = block.file_path

        def mutate(root: Path) -> None:
            target = root / file_path
            write_text_file(target, remove_block_text(read_text_file(target), block))

        result = self.capture(
            block.number,
            [file_path],
            mutate,
            baseline=baseline,
            towards_baseline=True,
            message=f"Temporary removal of block {block.number} from {file_path}",
        )
        ensure_pure(result.diff, source=file_path)
        return result

    def capture_computed_block(
        self,
        block: ParsedBlock,
        *,
        output: str | None = None,
        baseline: str | None = None,
    ) -> CaptureResult:
        """Capture the replacement of ``block`` by its script output.

        The script runs before the repository lock is taken; pass ``output``
        to reuse a result computed elsewhere.
        """

        if output is None:
            output = run_script(block.script_body(), cwd=self.repo.root).stdout
        file_path = block.file_path
        computed = output

        def mutate(root: Path) -> None:
            target = root / file_path
            write_text_file(target, replace_block_text(read_text_file(target), block, computed))

        return self.capture(
            block.number,
            [file_path],
            mutate,
            baseline=baseline,
            message=f"Computed replacement of block {block.number} in {file_path}",
        )

    def capture_file_content(
        self,
        path: str | Path,
        content: str | None,
        *,
        unit_id: str | int | None = None,
        baseline: str | None = None,
    ) -> CaptureResult:
        """Capture the replacement of ``path`` by ``content`` (``None`` deletes it)."""

        relative = Path(path).as_posix()

        def mutate(root: Path) -> None:
            target = root / relative
            if content is None:
                target.unlink(missing_ok=True)
            else:
                write_text_file(target, content)

        return self.capture(
            unit_id if unit_id is not None else relative,
            [relative],
            mutate,
            baseline=baseline,
            message=f"Whole-file content for {relative}",
        )

    # -------------------------------------------------------------- storage
    def block_patch_path(self, number: int) -> Path:
        return patch_directory(self.repo.root) / block_patch_name(number)

    def store_block_patch(self, block: ParsedBlock, result: CaptureResult) -> Path:
        """Write ``result`` to ``.taylored/<number>.taylored`` (never overwriting)."""

        path = write_new_patch(self.block_patch_path(block.number), result.diff)
        LOGGER.info("Stored patch for block %d at %s", block.number, path)
        return path

    def save_branch(self, branch: str) -> WriteOutcome:
        """Store the diff from ``HEAD`` to ``branch`` as a pure patch."""

        if not self.repo.ref_exists(branch):
            raise GitError(f"Branch '{branch}' does not exist", command=("git", "rev-parse", branch))
        outcome = self.repo.diff_refs("HEAD", branch)
        report = ensure_pure(outcome.text, source=branch)
        target = patch_directory(self.repo.root, create=True) / branch_patch_name(branch)
        written = write_with_backup(target, outcome.text)
        emit_event(
            "synthesis.completed",
            unit=branch,
            baseline="HEAD",
            has_changes=outcome.has_changes,
            direction=report.direction,
            path=target,
        )
        return written


__all__ = ["CaptureResult", "DiffSynthesizer", "Mutation"]
