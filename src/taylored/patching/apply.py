"""Apply, remove and dry-run stored patches with ``git apply``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Tuple

from ..telemetry import emit_event
from ..tools.scanner import read_text_file
from ..tools.vcs import GitError, GitRepository
from .errors import PatchError
from .patchfile import split_message

_PATCH_FAILED_RE = re.compile(r"error: patch failed: (?P<path>.+?)(?::(?P<line>\d+))?$")
_PATCH_DOES_NOT_APPLY_RE = re.compile(r"error: (?P<path>.+?): patch does not apply")
_HUNK_FAILED_RE = re.compile(r"error: (?P<path>.+?): hunk #(?P<hunk>\d+) failed at (?P<line>-?\d+)")


@dataclass(slots=True)
class ApplyResult:
    """Outcome of applying or checking one stored patch."""

    patch_path: Path
    reverse: bool
    check_only: bool
    skipped: bool = False
    stdout: str = ""
    stderr: str = ""

    @property
    def operation(self) -> str:
        verb = "remove" if self.reverse else "add"
        return f"verify-{verb}" if self.check_only else verb


def _parse_git_apply_failures(output: str) -> Tuple[Mapping[str, Any], ...]:
    """Parse git apply stderr for failing hunk metadata."""
    if not output:
        return ()
    entries: list[dict[str, Any]] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        match = _HUNK_FAILED_RE.match(line)
        if match:
            entries.append(
                {
                    "path": match.group("path"),
                    "hunk": int(match.group("hunk")),
                    "line": int(match.group("line")),
                    "reason": "hunk_failed",
                }
            )
            continue
        match = _PATCH_FAILED_RE.match(line)
        if match:
            line_text = match.group("line")
            entries.append(
                {
                    "path": match.group("path"),
                    "line": int(line_text) if line_text is not None else None,
                    "reason": "patch_failed",
                }
            )
            continue
        match = _PATCH_DOES_NOT_APPLY_RE.match(line)
        if match:
            entries.append({"path": match.group("path"), "reason": "does_not_apply"})
    return tuple(entries)


def apply_patch_file(
    repo: GitRepository,
    patch_path: Path | str,
    *,
    reverse: bool = False,
    check_only: bool = False,
) -> ApplyResult:
    """Apply (or with ``reverse`` remove) the patch at ``patch_path``.

    ``git apply --check`` always runs first so a failing patch leaves the
    working tree untouched.  Empty and message-only patches are a no-op.
    """

    path = Path(patch_path)
    result = ApplyResult(patch_path=path, reverse=reverse, check_only=check_only)
    if not split_message(read_text_file(path)).body.strip():
        result.skipped = True
        emit_event("apply.completed", patch=path, operation=result.operation, skipped=True)
        return result

    try:
        checked = repo.apply(path, reverse=reverse, check=True)
        result.stdout, result.stderr = checked.stdout, checked.stderr
        if not check_only:
            applied = repo.apply(path, reverse=reverse)
            result.stdout, result.stderr = applied.stdout, applied.stderr
    except GitError as error:
        failures = _parse_git_apply_failures(error.stderr)
        emit_event("apply.failed", patch=path, operation=result.operation, failing_hunks=failures)
        raise PatchError(
            f"Patch {path.name} cannot be {'removed' if reverse else 'applied'}: {error}",
            details={"failing_hunks": [dict(item) for item in failures], "stderr": error.stderr},
        ) from error

    emit_event("apply.completed", patch=path, operation=result.operation, skipped=False)
    return result


__all__ = ["ApplyResult", "apply_patch_file"]
