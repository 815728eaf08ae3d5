"""Scan a tree for marker blocks and turn each one into a stored patch."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List

from .config import TayloredSettings, normalise_extensions
from .constants import TAYLORED_DIR_NAME
from .patching.blocks import BlockParser, ParsedBlock
from .patching.errors import PatchError, PatchFileError
from .patching.patchfile import patch_directory
from .patching.synthesis import DiffSynthesizer
from .tools.scanner import find_files, read_text_file
from .tools.scripts import ScriptExecutionError
from .tools.vcs import GitError, GitRepository

LOGGER = logging.getLogger(__name__)

_UNIT_ERRORS = (ScriptExecutionError, PatchError, GitError)


@dataclass(slots=True)
class BlockFailure:
    number: int
    file_path: str
    error: str
    error_type: str
    stderr: str = ""


@dataclass(slots=True)
class AutomaticSummary:
    """What an automatic run produced."""

    scanned_files: int = 0
    created: List[Path] = field(default_factory=list)
    failures: List[BlockFailure] = field(default_factory=list)
    skipped_disabled: List[int] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _failure(block: ParsedBlock, error: BaseException) -> BlockFailure:
    stderr = error.stderr if isinstance(error, (ScriptExecutionError, GitError)) else ""
    return BlockFailure(
        number=block.number,
        file_path=block.file_path,
        error=str(error),
        error_type=type(error).__name__,
        stderr=stderr,
    )


class AutomaticRunner:
    """Extract every enabled block of a repository into ``.taylored/<n>.taylored``.

    Static and synchronous compute blocks are captured one after another on
    the calling thread.  Asynchronous compute blocks are submitted to a thread
    pool only afterwards and are settled together: a failing block is recorded
    and its siblings carry on.  All captures share the repository lock of the
    synthesizer, but async scripts run outside it with the repository as cwd,
    so a script reading repository files may observe a sibling's temporary
    mutation while that sibling holds its disposable branch.
    """

    def __init__(self, repo: GitRepository, *, settings: TayloredSettings | None = None) -> None:
        self.repo = repo
        self.settings = settings or TayloredSettings()
        self.synthesizer = DiffSynthesizer(repo, settings=self.settings)

    def run(
        self,
        extensions: Iterable[str] | str | None = None,
        *,
        base_branch: str | None = None,
        exclude: Iterable[str] = (),
    ) -> AutomaticSummary:
        if extensions is None:
            wanted = list(self.settings.extensions)
        else:
            wanted = normalise_extensions(extensions if isinstance(extensions, str) else list(extensions))
        if not wanted:
            raise ValueError("No file extensions given for the automatic scan")

        if self.repo.current_branch() is None:
            raise GitError("HEAD is detached; check out a branch before running the automatic scan")
        self.repo.ensure_clean(exclude=[TAYLORED_DIR_NAME])
        base = base_branch or self.settings.base_branch
        if not self.repo.ref_exists(base):
            raise GitError(f"Base branch '{base}' does not exist", command=("git", "rev-parse", base))
        patch_directory(self.repo.root, create=True)

        summary = AutomaticSummary()
        blocks = self._collect_blocks(wanted, [*self.settings.exclude, *exclude], summary)

        deferred: List[ParsedBlock] = []
        for block in blocks:
            if block.is_compute and block.attributes.is_async:
                deferred.append(block)
                continue
            try:
                summary.created.append(self._process_block(block, base))
            except _UNIT_ERRORS as error:
                LOGGER.error("Block %d in %s failed: %s", block.number, block.file_path, error)
                summary.failures.append(_failure(block, error))

        futures: Dict[Future[Path], ParsedBlock] = {}
        with ThreadPoolExecutor(max_workers=self.settings.max_workers, thread_name_prefix="taylored") as pool:
            for block in deferred:
                futures[pool.submit(self._process_block, block, base)] = block

            for future in as_completed(futures):
                block = futures[future]
                try:
                    summary.created.append(future.result())
                except Exception as error:  # noqa: BLE001 - settle every async unit and report
                    LOGGER.error("Async block %d in %s failed: %s", block.number, block.file_path, error)
                    summary.failures.append(_failure(block, error))

        summary.created.sort(key=lambda item: item.name)
        return summary

    def _collect_blocks(
        self,
        extensions: List[str],
        exclude: List[str],
        summary: AutomaticSummary,
    ) -> List[ParsedBlock]:
        """Parse every candidate file up front, before any branch is checked out."""

        files = find_files(self.repo.root, extensions, exclude=exclude)
        summary.scanned_files = len(files)
        parser = BlockParser()
        selected: List[ParsedBlock] = []
        seen: Dict[int, str] = {}
        for relative in files:
            for block in parser.parse(read_text_file(self.repo.root / relative), relative.as_posix()):
                if block.attributes.disabled:
                    LOGGER.info("Skipping disabled block %d in %s", block.number, block.file_path)
                    summary.skipped_disabled.append(block.number)
                    continue
                if block.number in seen:
                    summary.failures.append(
                        _failure(
                            block,
                            PatchFileError(f"Block number {block.number} already used in {seen[block.number]}"),
                        )
                    )
                    continue
                seen[block.number] = block.file_path
                target = self.synthesizer.block_patch_path(block.number)
                if target.exists():
                    summary.failures.append(_failure(block, PatchFileError(f"Target patch {target} already exists")))
                    continue
                selected.append(block)
        summary.warnings.extend(parser.warnings)
        return selected

    def _process_block(self, block: ParsedBlock, base: str) -> Path:
        if block.is_compute:
            result = self.synthesizer.capture_computed_block(block, baseline=base)
        else:
            result = self.synthesizer.capture_static_block(block, baseline=base)
        return self.synthesizer.store_block_patch(block, result)


def run_automatic(
    repo_root: Path | str,
    extensions: Iterable[str] | str | None = None,
    *,
    base_branch: str | None = None,
    exclude: Iterable[str] = (),
    settings: TayloredSettings | None = None,
) -> AutomaticSummary:
    """Convenience wrapper running :class:`AutomaticRunner` for ``repo_root``."""

    runner = AutomaticRunner(GitRepository(repo_root), settings=settings)
    return runner.run(extensions, base_branch=base_branch, exclude=exclude)


__all__ = ["AutomaticRunner", "AutomaticSummary", "BlockFailure", "run_automatic"]
