"""Classify diffs as pure additions, pure deletions or mixed."""

from __future__ import annotations

from dataclasses import dataclass

from .diff import parse_patch
from .errors import PatchPurityError
from .model import Patch


@dataclass(slots=True, frozen=True)
class PurityReport:
    """Addition/deletion totals across every hunk of every file."""

    additions: int
    deletions: int

    @property
    def is_pure(self) -> bool:
        return self.additions == 0 or self.deletions == 0

    @property
    def is_empty(self) -> bool:
        return self.additions == 0 and self.deletions == 0

    @property
    def direction(self) -> str:
        if self.is_empty:
            return "empty"
        if not self.is_pure:
            return "mixed"
        return "addition" if self.additions else "deletion"


def analyze_purity(patch: Patch | str) -> PurityReport:
    """Return the :class:`PurityReport` for ``patch`` (text is parsed first)."""

    parsed = parse_patch(patch) if isinstance(patch, str) else patch
    return PurityReport(additions=parsed.additions, deletions=parsed.deletions)


def is_pure(patch: Patch | str) -> bool:
    return analyze_purity(patch).is_pure


def ensure_pure(patch: Patch | str, *, source: str | None = None) -> PurityReport:
    """Raise :class:`PatchPurityError` when ``patch`` mixes additions and deletions."""

    report = analyze_purity(patch)
    if not report.is_pure:
        raise PatchPurityError(report.additions, report.deletions, source=source)
    return report


__all__ = ["PurityReport", "analyze_purity", "ensure_pure", "is_pure"]
