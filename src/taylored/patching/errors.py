"""Exceptions raised while parsing, capturing or repairing patches."""

from __future__ import annotations

from typing import Any, Mapping


class PatchError(RuntimeError):
    """Raised when a patch fails validation or application."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class PatchParseError(PatchError):
    """Raised when unified-diff text is malformed."""


class PatchPurityError(PatchError):
    """Raised when a diff mixes additions and deletions where a pure one is required."""

    def __init__(self, additions: int, deletions: int, *, source: str | None = None) -> None:
        where = f" in {source}" if source else ""
        super().__init__(
            f"Patch{where} is not pure: {additions} addition(s) and {deletions} deletion(s). "
            "A stored patch must contain only additions or only deletions.",
            details={"additions": additions, "deletions": deletions},
        )
        self.additions = additions
        self.deletions = deletions


class PatchFileError(PatchError):
    """Raised when a stored patch file is missing or would be overwritten."""


class OffsetError(PatchError):
    """Raised when a stored patch applies neither inverted nor forward."""


__all__ = ["OffsetError", "PatchError", "PatchFileError", "PatchParseError", "PatchPurityError"]
