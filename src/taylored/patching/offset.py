"""Recompute a stored patch's line offsets against a base branch."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..constants import AUTO_COMMIT_PREFIX, DEFAULT_BASE_BRANCH, OFFSET_BRANCH_PREFIX
from ..telemetry import emit_event
from ..tools.isolation import isolated_branch
from ..tools.scanner import read_text_file
from ..tools.vcs import GitError, GitRepository
from .apply import apply_patch_file
from .diff import parse_patch
from .errors import OffsetError, PatchError
from .model import Patch
from .patchfile import embed_message, split_message, write_with_backup

LOGGER = logging.getLogger(__name__)


class OffsetOutcome(str, Enum):
    MESSAGE_REFRESHED = "message-refreshed"
    REWRITTEN = "rewritten"
    UNCHANGED = "unchanged"


@dataclass(slots=True)
class OffsetResult:
    patch_path: Path
    outcome: OffsetOutcome
    inverted: bool
    message: str | None
    applied_reverse: bool | None = None
    backup: Path | None = None


def hunks_pairwise_inverted(original: Patch, recomputed: Patch) -> bool:
    """Return ``True`` when every recomputed hunk swaps the original's old/new ranges.

    This is how recomputing an already-inverted view shows up.  It is a
    heuristic: only the ranges are compared, never the line content, so two
    unrelated edits with mirrored ranges also match.
    """

    before = [hunk for _, hunk in original.iter_hunks()]
    after = [hunk for _, hunk in recomputed.iter_hunks()]
    if not before or len(before) != len(after):
        return False
    for old, new in zip(before, after):
        if old.old_lines == old.new_lines:
            return False
        if (new.old_start, new.old_lines, new.new_start, new.new_lines) != (
            old.new_start,
            old.new_lines,
            old.old_start,
            old.old_lines,
        ):
            return False
    return True


def _trim_trailing_whitespace(text: str) -> str:
    return "\n".join(line.rstrip() for line in text.split("\n"))


def recalculate_offsets(
    repo: GitRepository,
    patch_path: Path | str,
    *,
    base_branch: str = DEFAULT_BASE_BRANCH,
    message: str | None = None,
    prefix: str = OFFSET_BRANCH_PREFIX,
    lock: threading.Lock | None = None,
) -> OffsetResult:
    """Refresh ``patch_path`` so it applies cleanly relative to ``base_branch``.

    On a disposable branch the patch is removed (or, failing that, applied),
    the result committed and diffed against ``base_branch``.  When the new
    hunks merely mirror the old ones the stored body is kept and only the
    ``Subject:`` message is refreshed.
    """

    path = Path(patch_path)
    if not path.is_file():
        raise PatchError(f"Patch file not found: {path}")
    if not repo.ref_exists(base_branch):
        raise GitError(
            f"Base branch '{base_branch}' does not exist; cannot recalculate offsets",
            command=("git", "rev-parse", "--verify", base_branch),
        )

    original_content = read_text_file(path)
    document = split_message(original_content)
    effective_message = message or document.message
    original_patch = parse_patch(document.body)
    paths = original_patch.target_paths()

    if not paths:
        final = embed_message(document.body, effective_message)
        written = write_with_backup(path, final)
        outcome = OffsetOutcome.MESSAGE_REFRESHED if written.written else OffsetOutcome.UNCHANGED
        return OffsetResult(path, outcome, inverted=False, message=effective_message, backup=written.backup)

    with isolated_branch(repo, prefix=prefix, unit_id=path.stem, lock=lock):
        try:
            apply_patch_file(repo, path, reverse=True)
            applied_reverse = True
        except PatchError as reverse_error:
            LOGGER.info("Reverse apply of %s failed, trying forward: %s", path.name, reverse_error)
            try:
                apply_patch_file(repo, path)
            except PatchError as forward_error:
                raise OffsetError(
                    f"Patch {path.name} applies neither inverted nor forward on top of HEAD",
                    details={"reverse": str(reverse_error), "forward": str(forward_error)},
                ) from forward_error
            applied_reverse = False
        repo.stage(*paths)
        repo.commit(f"{AUTO_COMMIT_PREFIX} offset refresh for {path.name}", allow_empty=True)
        diff = repo.diff_refs(base_branch, "HEAD", *paths)

    recomputed = parse_patch(diff.text)
    inverted = hunks_pairwise_inverted(original_patch, recomputed)
    body = document.body if inverted else _trim_trailing_whitespace(diff.text)
    final = embed_message(body, effective_message)
    written = write_with_backup(path, final)

    if not written.written:
        outcome = OffsetOutcome.UNCHANGED
    elif inverted:
        outcome = OffsetOutcome.MESSAGE_REFRESHED
    else:
        outcome = OffsetOutcome.REWRITTEN
    emit_event(
        "offset.completed",
        patch=path,
        base=base_branch,
        inverted=inverted,
        applied_reverse=applied_reverse,
        outcome=outcome.value,
    )
    return OffsetResult(
        patch_path=path,
        outcome=outcome,
        inverted=inverted,
        message=effective_message,
        applied_reverse=applied_reverse,
        backup=written.backup,
    )


__all__ = ["OffsetOutcome", "OffsetResult", "hunks_pairwise_inverted", "recalculate_offsets"]
