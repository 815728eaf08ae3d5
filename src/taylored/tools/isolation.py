"""Disposable-branch scopes guarding the caller's checkout."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator

from ..constants import TAYLORED_DIR_NAME
from ..telemetry import emit_event
from ..utils.slug import slugify
from .vcs import GitError, GitRepository

LOGGER = logging.getLogger(__name__)

_LOCKS: Dict[Path, threading.Lock] = {}
_REGISTRY_LOCK = threading.Lock()


def repository_lock(root: Path | str) -> threading.Lock:
    """Return the process-wide lock serialising checkouts of ``root``."""

    key = Path(root).resolve()
    with _REGISTRY_LOCK:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _LOCKS[key] = lock
        return lock


@dataclass(slots=True)
class IsolatedBranch:
    """Handle for a disposable branch checked out on behalf of one unit."""

    repo: GitRepository
    name: str
    original_ref: str
    start_commit: str


def branch_name(prefix: str, unit_id: str | int, *, timestamp: int | None = None) -> str:
    """Return ``<prefix>-<id>-<timestamp>`` with git-safe components."""

    stamp = timestamp if timestamp is not None else int(time.time() * 1000)
    safe_prefix = slugify(prefix, fallback="taylored", lowercase=False, max_length=40)
    safe_id = slugify(str(unit_id), fallback="unit", lowercase=False, max_length=60)
    return f"{safe_prefix}-{safe_id}-{stamp}"


@contextmanager
def isolated_branch(
    repo: GitRepository,
    *,
    prefix: str,
    unit_id: str | int,
    exclude: Iterable[str | Path] = (TAYLORED_DIR_NAME,),
    lock: threading.Lock | None = None,
) -> Iterator[IsolatedBranch]:
    """Check out a fresh branch from ``HEAD`` for the duration of the block.

    The working tree must be clean (``exclude`` paths aside) before any branch
    is touched.  On exit the unit's leftovers outside ``exclude`` are discarded,
    the original branch or commit is checked out again without forcing, so
    pending edits under ``exclude`` carry across, and the disposable branch is
    deleted, whatever happened inside the block.
    Failing to restore the checkout is raised unless another error is already
    propagating; failing to delete the branch is only logged.
    """

    excluded = tuple(exclude)
    guard = lock or repository_lock(repo.root)
    with guard:
        repo.ensure_clean(exclude=excluded)
        original_ref = repo.current_ref()
        start_commit = repo.head_commit()
        stamp = int(time.time() * 1000)
        name = branch_name(prefix, unit_id, timestamp=stamp)
        while repo.branch_exists(name):
            stamp += 1
            name = branch_name(prefix, unit_id, timestamp=stamp)
        repo.create_branch(name)
        handle = IsolatedBranch(repo=repo, name=name, original_ref=original_ref, start_commit=start_commit)
        emit_event("isolation.acquired", branch=name, original=original_ref, root=repo.root)

        completed = False
        try:
            yield handle
            completed = True
        finally:
            _release(handle, excluded, succeeded=completed)


def _release(handle: IsolatedBranch, exclude: tuple[str | Path, ...], *, succeeded: bool) -> None:
    repo = handle.repo
    try:
        repo.discard_changes(exclude=exclude)
        repo.checkout(handle.original_ref)
    except GitError as error:
        if succeeded:
            raise
        LOGGER.error("Failed to restore %s after an aborted unit: %s", handle.original_ref, error)
        return

    try:
        repo.delete_branch(handle.name, force=True)
    except GitError as error:
        LOGGER.warning("Could not delete temporary branch %s: %s", handle.name, error)
        emit_event("isolation.cleanup_failed", branch=handle.name, error=str(error))
        return
    emit_event("isolation.released", branch=handle.name, original=handle.original_ref, completed=succeeded)


__all__ = ["IsolatedBranch", "branch_name", "isolated_branch", "repository_lock"]
