"""Tokenise, parse and serialise unified diffs.

Parsing runs in two stages.  :func:`tokenize_diff` turns text into a flat
stream of :class:`DiffEvent` objects, tracking the remaining old/new line
budget of the current hunk so that a deleted line reading ``-- x`` is never
mistaken for a file header.  :func:`parse_patch` folds the stream into the
:mod:`taylored.patching.model` types with a small state machine.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List

from .errors import PatchParseError
from .model import DEV_NULL, NO_NEWLINE_MARKER, Change, ChangeKind, FileDiff, Hunk, Patch

_HUNK_HEADER = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@(?P<section>.*)$"
)
_GIT_HEADER_PREFIX = "diff --git "
_QUOTED_OR_BARE = r'"(?:[^"\\]|\\.)*"|\S+'
_DIFF_GIT_HEADER = re.compile(rf"^diff --git (?P<old>{_QUOTED_OR_BARE}) (?P<new>{_QUOTED_OR_BARE})$")
_BINARY_MARKERS = ("Binary files ", "GIT binary patch")


class DiffEventKind(str, Enum):
    PREAMBLE = "preamble"
    FILE_START = "file_start"
    FILE_HEADER = "file_header"
    OLD_PATH = "old_path"
    NEW_PATH = "new_path"
    HUNK_HEADER = "hunk_header"
    CHANGE = "change"
    NO_NEWLINE = "no_newline"
    BINARY = "binary"


@dataclass(slots=True)
class DiffEvent:
    """Single lexical unit of a diff, tagged with its 1-based source line."""

    kind: DiffEventKind
    line_number: int
    text: str
    change_kind: ChangeKind | None = None
    ranges: tuple[int, int, int, int] | None = None
    section: str = ""


def _split_lines(text: str) -> List[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _default_count(value: str | None) -> int:
    return int(value) if value is not None else 1


def tokenize_diff(text: str) -> Iterator[DiffEvent]:
    """Yield the events making up ``text``.

    Raises :class:`PatchParseError` for malformed hunk headers and for hunks
    whose bodies are shorter than their headers declare.
    """

    remaining_old = 0
    remaining_new = 0
    hunk_line = 0
    seen_file = False

    for index, line in enumerate(_split_lines(text), start=1):
        if remaining_old > 0 or remaining_new > 0:
            marker = line[:1]
            if marker == "\\":
                yield DiffEvent(DiffEventKind.NO_NEWLINE, index, line)
                continue
            if marker in {" ", ""} and remaining_old > 0 and remaining_new > 0:
                remaining_old -= 1
                remaining_new -= 1
                yield DiffEvent(DiffEventKind.CHANGE, index, line[1:], change_kind=ChangeKind.CONTEXT)
                continue
            if marker == "-" and remaining_old > 0:
                remaining_old -= 1
                yield DiffEvent(DiffEventKind.CHANGE, index, line[1:], change_kind=ChangeKind.DELETE)
                continue
            if marker == "+" and remaining_new > 0:
                remaining_new -= 1
                yield DiffEvent(DiffEventKind.CHANGE, index, line[1:], change_kind=ChangeKind.ADD)
                continue
            raise PatchParseError(
                f"Line {index}: hunk starting at line {hunk_line} ends early "
                f"({remaining_old} old / {remaining_new} new line(s) missing)",
                details={"line": index, "hunk_line": hunk_line},
            )

        if line.startswith("\\"):
            yield DiffEvent(DiffEventKind.NO_NEWLINE, index, line)
        elif line.startswith(_GIT_HEADER_PREFIX):
            seen_file = True
            yield DiffEvent(DiffEventKind.FILE_START, index, line)
        elif line.startswith("--- "):
            seen_file = True
            yield DiffEvent(DiffEventKind.OLD_PATH, index, line[4:])
        elif line.startswith("+++ "):
            yield DiffEvent(DiffEventKind.NEW_PATH, index, line[4:])
        elif line.startswith("@@"):
            match = _HUNK_HEADER.match(line)
            if not match:
                raise PatchParseError(f"Line {index}: malformed hunk header {line!r}", details={"line": index})
            ranges = (
                int(match.group("old_start")),
                _default_count(match.group("old_count")),
                int(match.group("new_start")),
                _default_count(match.group("new_count")),
            )
            remaining_old, remaining_new = ranges[1], ranges[3]
            hunk_line = index
            yield DiffEvent(DiffEventKind.HUNK_HEADER, index, line, ranges=ranges, section=match.group("section"))
        elif seen_file and line.startswith(_BINARY_MARKERS):
            yield DiffEvent(DiffEventKind.BINARY, index, line)
        elif seen_file:
            yield DiffEvent(DiffEventKind.FILE_HEADER, index, line)
        else:
            yield DiffEvent(DiffEventKind.PREAMBLE, index, line)

    if remaining_old > 0 or remaining_new > 0:
        raise PatchParseError(
            f"Unexpected end of diff inside the hunk starting at line {hunk_line}",
            details={"hunk_line": hunk_line},
        )


def _normalise_label(label: str, prefix: str) -> str | None:
    path = label.split("\t", 1)[0].rstrip()
    if path == DEV_NULL:
        return None
    if path.startswith('"') and path.endswith('"') and len(path) >= 2:
        path = path[1:-1]
    if path.startswith(prefix):
        path = path[len(prefix):]
    return path


def _git_header_paths(line: str) -> tuple[str | None, str | None]:
    """Return the paths named by a ``diff --git`` line.

    Unquoted names containing spaces are split in the middle when both sides
    name the same file, otherwise at the last `` b/``.
    """

    match = _DIFF_GIT_HEADER.match(line)
    if match:
        return _normalise_label(match.group("old"), "a/"), _normalise_label(match.group("new"), "b/")
    rest = line[len(_GIT_HEADER_PREFIX):]
    middle = len(rest) // 2
    if rest.startswith("a/") and rest[middle:middle + 3] == " b/" and rest[2:middle] == rest[middle + 3:]:
        split = middle
    else:
        split = rest.rfind(" b/")
    if split <= 0:
        return None, None
    return _normalise_label(rest[:split], "a/"), _normalise_label(rest[split + 1:], "b/")


class _PatchBuilder:
    """State machine folding diff events into a :class:`Patch`."""

    def __init__(self) -> None:
        self.patch = Patch()
        self.current: FileDiff | None = None
        self.binary = False
        self.hunk: Hunk | None = None

    def feed(self, events: Iterable[DiffEvent]) -> Patch:
        for event in events:
            handler = getattr(self, f"_on_{event.kind.value}")
            handler(event)
        self._flush()
        return self.patch

    def _flush(self) -> None:
        if self.current is not None:
            if self.binary:
                self.patch.skipped_binary.append(self.current.new_path or self.current.old_path or "")
            else:
                self.patch.files.append(self.current)
        self.current = None
        self.binary = False
        self.hunk = None

    def _start_file(self, old: str | None, new: str | None) -> FileDiff:
        self._flush()
        self.current = FileDiff(old_path=old, new_path=new)
        return self.current

    def _on_preamble(self, event: DiffEvent) -> None:
        self.patch.preamble.append(event.text)

    def _on_file_start(self, event: DiffEvent) -> None:
        old, new = _git_header_paths(event.text)
        self._start_file(old, new).headers.append(event.text)

    def _on_file_header(self, event: DiffEvent) -> None:
        if self.current is None or self.hunk is not None:
            # Trailing text after the last hunk of a file belongs to no entry.
            if self.current is None:
                self.patch.preamble.append(event.text)
            return
        self.current.headers.append(event.text)
        if event.text.startswith("new file mode"):
            self.current.old_path = None
        elif event.text.startswith("deleted file mode"):
            self.current.new_path = None

    def _on_old_path(self, event: DiffEvent) -> None:
        current = self.current
        if current is None or current.old_label is not None or current.hunks:
            current = self._start_file(None, None)
        current.old_label = event.text
        current.old_path = _normalise_label(event.text, "a/")

    def _on_new_path(self, event: DiffEvent) -> None:
        if self.current is None or self.current.new_label is not None:
            raise PatchParseError(f"Line {event.line_number}: '+++' without a preceding '---'")
        self.current.new_label = event.text
        self.current.new_path = _normalise_label(event.text, "b/")

    def _on_hunk_header(self, event: DiffEvent) -> None:
        if self.current is None:
            raise PatchParseError(f"Line {event.line_number}: hunk header before any file header")
        assert event.ranges is not None
        old_start, old_lines, new_start, new_lines = event.ranges
        self.hunk = Hunk(old_start, old_lines, new_start, new_lines, section=event.section)
        self.current.hunks.append(self.hunk)

    def _on_change(self, event: DiffEvent) -> None:
        assert self.hunk is not None and event.change_kind is not None
        self.hunk.changes.append(Change(event.change_kind, event.text))

    def _on_no_newline(self, event: DiffEvent) -> None:
        if self.hunk is None or not self.hunk.changes:
            raise PatchParseError(f"Line {event.line_number}: stray {NO_NEWLINE_MARKER!r} marker")
        self.hunk.changes[-1].no_newline = True

    def _on_binary(self, event: DiffEvent) -> None:
        self.binary = True


def parse_patch(text: str) -> Patch:
    """Parse unified-diff ``text``; binary entries are skipped."""

    return _PatchBuilder().feed(tokenize_diff(text))


def serialize_patch(patch: Patch) -> str:
    """Render ``patch`` back to unified-diff text (empty string for no content)."""

    lines: List[str] = list(patch.preamble)
    for file_diff in patch.files:
        lines.extend(file_diff.headers)
        if file_diff.hunks or file_diff.old_label is not None:
            old_label, new_label = file_diff.path_labels()
            lines.append(f"--- {old_label}")
            lines.append(f"+++ {new_label}")
        for hunk in file_diff.hunks:
            lines.append(hunk.header())
            for change in hunk.changes:
                lines.append(change.render())
                if change.no_newline:
                    lines.append(NO_NEWLINE_MARKER)
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


__all__ = ["DiffEvent", "DiffEventKind", "parse_patch", "serialize_patch", "tokenize_diff"]
