"""Value types describing a unified diff."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List

DEV_NULL = "/dev/null"
NO_NEWLINE_MARKER = "\\ No newline at end of file"


class ChangeKind(str, Enum):
    """Role of a single line inside a hunk."""

    CONTEXT = "context"
    ADD = "add"
    DELETE = "delete"

    @property
    def marker(self) -> str:
        return _MARKERS[self]


_MARKERS = {ChangeKind.CONTEXT: " ", ChangeKind.ADD: "+", ChangeKind.DELETE: "-"}


@dataclass(slots=True)
class Change:
    """One line of a hunk; ``text`` excludes the marker and line break."""

    kind: ChangeKind
    text: str
    no_newline: bool = False

    def render(self) -> str:
        return f"{self.kind.marker}{self.text}"


@dataclass(slots=True)
class Hunk:
    """Contiguous chunk of a file diff with its old/new ranges."""

    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    changes: List[Change] = field(default_factory=list)
    section: str = ""

    @property
    def additions(self) -> int:
        return sum(1 for change in self.changes if change.kind is ChangeKind.ADD)

    @property
    def deletions(self) -> int:
        return sum(1 for change in self.changes if change.kind is ChangeKind.DELETE)

    @property
    def context_lines(self) -> int:
        return sum(1 for change in self.changes if change.kind is ChangeKind.CONTEXT)

    def replay_counts(self) -> tuple[int, int]:
        """Return the ``(old, new)`` line counts consumed by ``changes``."""

        old = sum(1 for change in self.changes if change.kind is not ChangeKind.ADD)
        new = sum(1 for change in self.changes if change.kind is not ChangeKind.DELETE)
        return old, new

    def is_consistent(self) -> bool:
        return self.replay_counts() == (self.old_lines, self.new_lines)

    def header(self) -> str:
        old_range = _format_range(self.old_start, self.old_lines)
        new_range = _format_range(self.new_start, self.new_lines)
        return f"@@ -{old_range} +{new_range} @@{self.section}"


@dataclass(slots=True)
class FileDiff:
    """Changes to a single file.

    ``old_path``/``new_path`` are repository-relative with the ``a/`` and
    ``b/`` prefixes removed; ``None`` stands for ``/dev/null`` when a whole
    file is created or deleted.  The raw ``---``/``+++`` labels and extended
    header lines are kept so unchanged entries serialise byte for byte.
    """

    old_path: str | None
    new_path: str | None
    hunks: List[Hunk] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)
    old_label: str | None = None
    new_label: str | None = None

    @property
    def target_path(self) -> str:
        path = self.new_path if self.new_path is not None else self.old_path
        if path is None:
            raise ValueError("File diff has neither an old nor a new path")
        return path

    @property
    def is_new_file(self) -> bool:
        return self.old_path is None

    @property
    def is_deleted_file(self) -> bool:
        return self.new_path is None

    @property
    def additions(self) -> int:
        return sum(hunk.additions for hunk in self.hunks)

    @property
    def deletions(self) -> int:
        return sum(hunk.deletions for hunk in self.hunks)

    def path_labels(self) -> tuple[str, str]:
        old = self.old_label or (f"a/{self.old_path}" if self.old_path is not None else DEV_NULL)
        new = self.new_label or (f"b/{self.new_path}" if self.new_path is not None else DEV_NULL)
        return old, new


@dataclass(slots=True)
class Patch:
    """Ordered file diffs plus any free text preceding the first one."""

    files: List[FileDiff] = field(default_factory=list)
    preamble: List[str] = field(default_factory=list)
    skipped_binary: List[str] = field(default_factory=list)

    @property
    def additions(self) -> int:
        return sum(item.additions for item in self.files)

    @property
    def deletions(self) -> int:
        return sum(item.deletions for item in self.files)

    def iter_hunks(self) -> Iterator[tuple[FileDiff, Hunk]]:
        for file_diff in self.files:
            for hunk in file_diff.hunks:
                yield file_diff, hunk

    def target_paths(self) -> List[str]:
        seen: List[str] = []
        for file_diff in self.files:
            for path in (file_diff.old_path, file_diff.new_path):
                if path is not None and path not in seen:
                    seen.append(path)
        return seen


def _format_range(start: int, count: int) -> str:
    if count == 1:
        return str(start)
    return f"{start},{count}"


__all__ = [
    "Change",
    "ChangeKind",
    "DEV_NULL",
    "FileDiff",
    "Hunk",
    "NO_NEWLINE_MARKER",
    "Patch",
]
