"""Frame-based integrity checks and surgical upgrades of stored patches.

A stored patch is cut into modification blocks: maximal runs of additions
or deletions inside a hunk.  The context lines immediately around a block are
its frames.  When the frames still surround a run of the same length in the
live file (allowing the whole run to drift a few lines), the patch is intact
and its block text can be refreshed from the live file without changing the
shape of any hunk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List

from ..constants import FRAME_SEARCH_WINDOW
from ..telemetry import emit_event
from ..tools.scanner import read_text_file
from ..tools.vcs import GitRepository
from .diff import parse_patch, serialize_patch
from .model import Change, ChangeKind, FileDiff, Hunk, Patch
from .patchfile import write_with_backup

LOGGER = logging.getLogger(__name__)


class IntegrityStatus(str, Enum):
    INTACT = "INTACT"
    CORRUPTED = "CORRUPTED"


class FileCase(str, Enum):
    """How a file diff is validated."""

    BLOCKS = "blocks"
    NEW_FILE = "new-file"
    DELETION = "deletion"
    REPLACEMENT = "replacement"


@dataclass(slots=True, frozen=True)
class Frame:
    content: str
    old_line_number: int
    new_line_number: int


@dataclass(slots=True)
class ModificationBlock:
    """Homogeneous run of changes inside one hunk."""

    kind: ChangeKind
    hunk_index: int
    change_index: int
    changes: List[Change]
    start_line: int
    top_frame: Frame | None = None
    bottom_frame: Frame | None = None

    @property
    def size(self) -> int:
        return len(self.changes)

    def frame_line(self, frame: Frame) -> int:
        """Return the live-file line (1-based) a frame is expected on."""

        return frame.new_line_number if self.kind is ChangeKind.ADD else frame.old_line_number


@dataclass(slots=True, frozen=True)
class RejectedBlock:
    hunk_index: int
    change_index: int
    reason: str


@dataclass(slots=True)
class BlockCheck:
    block: ModificationBlock
    top_intact: bool
    bottom_intact: bool
    in_bounds: bool
    drift: int

    @property
    def intact(self) -> bool:
        return self.top_intact and self.bottom_intact and self.in_bounds


@dataclass(slots=True)
class FileReport:
    path: str
    status: IntegrityStatus
    case: FileCase
    message: str = ""
    checks: List[BlockCheck] = field(default_factory=list)
    rejected: List[RejectedBlock] = field(default_factory=list)
    updated: bool = False

    @property
    def intact(self) -> bool:
        return self.status is IntegrityStatus.INTACT


@dataclass(slots=True)
class UpgradeResult:
    """Outcome of verifying (and possibly rewriting) one patch."""

    files: List[FileReport]
    text: str
    patch_path: Path | None = None
    written: bool = False
    backup: Path | None = None

    @property
    def intact(self) -> bool:
        return all(report.intact for report in self.files)

    @property
    def updated(self) -> bool:
        return any(report.updated for report in self.files)

    @property
    def status(self) -> IntegrityStatus:
        return IntegrityStatus.INTACT if self.intact else IntegrityStatus.CORRUPTED


# --------------------------------------------------------------- block model
def identify_blocks(file_diff: FileDiff) -> tuple[List[ModificationBlock], List[RejectedBlock]]:
    """Split every hunk of ``file_diff`` into modification blocks.

    Line counters are replayed from each hunk's declared start: context lines
    advance both sides, deletions the old side and additions the new side.
    A run switching between additions and deletions without a context line
    in between is rejected.
    """

    blocks: List[ModificationBlock] = []
    rejected: List[RejectedBlock] = []

    for hunk_index, hunk in enumerate(file_diff.hunks):
        old_line = hunk.old_start
        new_line = hunk.new_start
        last_context: Frame | None = None
        current: ModificationBlock | None = None
        mixed = False

        def close(bottom: Frame | None) -> None:
            if current is None:
                return
            if mixed:
                reason = "additions and deletions interleave without a context line"
                rejected.append(RejectedBlock(hunk_index, current.change_index, reason))
                LOGGER.warning(
                    "Rejecting block at change %d of hunk %d in %s: %s",
                    current.change_index + 1,
                    hunk_index + 1,
                    file_diff.target_path,
                    reason,
                )
                return
            current.bottom_frame = bottom
            blocks.append(current)

        for change_index, change in enumerate(hunk.changes):
            if change.kind is ChangeKind.CONTEXT:
                frame = Frame(change.text, old_line, new_line)
                close(frame)
                current = None
                mixed = False
                last_context = frame
                old_line += 1
                new_line += 1
                continue

            if current is None:
                start = new_line if change.kind is ChangeKind.ADD else old_line
                current = ModificationBlock(
                    kind=change.kind,
                    hunk_index=hunk_index,
                    change_index=change_index,
                    changes=[],
                    start_line=start,
                    top_frame=last_context,
                )
            elif change.kind is not current.kind:
                mixed = True
            current.changes.append(change)
            if change.kind is ChangeKind.DELETE:
                old_line += 1
            else:
                new_line += 1
        close(None)

    return blocks, rejected


def _search_offsets(window: int) -> Iterator[int]:
    yield 0
    for distance in range(1, window + 1):
        yield -distance
        yield distance


def _frame_matches(lines: List[str], index: int, frame: Frame) -> bool:
    return 0 <= index < len(lines) and lines[index].strip() == frame.content.strip()


def locate_block(block: ModificationBlock, lines: List[str], window: int = FRAME_SEARCH_WINDOW) -> int | None:
    """Return the drift at which ``block``'s frames surround ``block.size`` lines.

    Offsets are tried nearest first within ``window`` lines of the nominal
    position.  ``None`` means the anchored sequence was not found.
    """

    nominal = block.start_line - 1
    for drift in _search_offsets(window if (block.top_frame or block.bottom_frame) else 0):
        start = nominal + drift
        end = start + block.size
        if start < 0 or end > len(lines):
            continue
        if block.top_frame is not None and not _frame_matches(lines, start - 1, block.top_frame):
            continue
        if block.bottom_frame is not None and not _frame_matches(lines, end, block.bottom_frame):
            continue
        return drift
    return None


def check_block(block: ModificationBlock, lines: List[str], window: int = FRAME_SEARCH_WINDOW) -> BlockCheck:
    """Check ``block``'s frames against ``lines``; absent frames count as intact."""

    located = locate_block(block, lines, window)
    drift = located if located is not None else 0
    start = block.start_line - 1 + drift
    top_ok = block.top_frame is None or _frame_matches(
        lines, block.frame_line(block.top_frame) - 1 + drift, block.top_frame
    )
    bottom_ok = block.bottom_frame is None or _frame_matches(
        lines, block.frame_line(block.bottom_frame) - 1 + drift, block.bottom_frame
    )
    in_bounds = start >= 0 and start + block.size <= len(lines)
    return BlockCheck(block=block, top_intact=top_ok, bottom_intact=bottom_ok, in_bounds=in_bounds, drift=drift)


def split_live_lines(text: str) -> tuple[List[str], bool]:
    """Return ``(lines, ends_with_newline)`` for live file ``text``."""

    if not text:
        return [], True
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
        return lines, True
    return lines, False


# ------------------------------------------------------------ file handling
def _classify(file_diff: FileDiff) -> FileCase:
    if len(file_diff.hunks) != 1:
        return FileCase.DELETION if file_diff.is_deleted_file else FileCase.BLOCKS
    hunk = file_diff.hunks[0]
    if hunk.context_lines:
        return FileCase.BLOCKS
    if file_diff.is_deleted_file or (hunk.new_lines == 0 and hunk.new_start == 0 and hunk.deletions):
        return FileCase.DELETION
    if hunk.old_start == 0 and hunk.old_lines == 0 and hunk.additions:
        return FileCase.NEW_FILE
    if hunk.old_lines and hunk.new_lines and hunk.old_start <= 1 and hunk.new_start <= 1:
        return FileCase.REPLACEMENT
    return FileCase.BLOCKS


def _rebuild_additions(hunk: Hunk, lines: List[str], ends_with_newline: bool) -> bool:
    """Replace the additions of ``hunk`` with ``lines``; return ``True`` if it changed."""

    additions = [Change(ChangeKind.ADD, line) for line in lines]
    if additions and not ends_with_newline:
        additions[-1].no_newline = True
    deletions = [change for change in hunk.changes if change.kind is ChangeKind.DELETE]
    rebuilt = deletions + additions
    new_start = hunk.new_start if hunk.new_start else 1
    changed = rebuilt != hunk.changes or hunk.new_lines != len(additions) or hunk.new_start != new_start
    hunk.changes = rebuilt
    hunk.new_lines = len(additions)
    hunk.new_start = new_start
    return changed


class PatchUpgrader:
    """Verify stored patches against live files and refresh intact ones."""

    def __init__(
        self,
        repo_root: Path | str,
        *,
        window: int = FRAME_SEARCH_WINDOW,
        ref: str | None = None,
        repo: GitRepository | None = None,
    ) -> None:
        self.root = Path(repo_root).resolve()
        self.window = window
        self.ref = ref
        if ref is not None and repo is None:
            repo = GitRepository(self.root)
        self.repo = repo

    def _read_live(self, path: str) -> str | None:
        if self.ref is not None:
            assert self.repo is not None
            return self.repo.show_file(self.ref, path)
        target = self.root / path
        if not target.is_file():
            return None
        return read_text_file(target)

    # ------------------------------------------------------------------ api
    def verify_patch(self, patch: Patch) -> List[FileReport]:
        """Check (and refresh in place where intact) every file diff of ``patch``."""

        return [self._process_file(file_diff) for file_diff in patch.files]

    def upgrade_text(self, text: str) -> UpgradeResult:
        """Return the upgraded rendering of patch ``text`` without writing anything."""

        patch = parse_patch(text)
        reports = self.verify_patch(patch)
        result = UpgradeResult(files=reports, text=text)
        if result.intact and result.updated:
            result.text = serialize_patch(patch)
        return result

    def upgrade_file(self, patch_path: Path | str) -> UpgradeResult:
        """Upgrade the patch stored at ``patch_path`` when it is intact.

        The file is only rewritten when its text changes; the previous bytes
        are kept in a ``.backup`` sibling first.
        """

        path = Path(patch_path)
        original = read_text_file(path)
        result = self.upgrade_text(original)
        result.patch_path = path
        if result.intact and result.text != original:
            outcome = write_with_backup(path, result.text)
            result.written = outcome.written
            result.backup = outcome.backup
        emit_event(
            "upgrade.completed",
            patch=path,
            status=result.status.value,
            updated=result.updated,
            written=result.written,
            files=[{"path": report.path, "status": report.status.value} for report in result.files],
        )
        return result

    # ------------------------------------------------------------ internals
    def _process_file(self, file_diff: FileDiff) -> FileReport:
        path = file_diff.target_path
        case = _classify(file_diff)
        live = self._read_live(path)

        if case is FileCase.DELETION:
            if live is None:
                return FileReport(path, IntegrityStatus.INTACT, case, "target file is absent as expected")
            return FileReport(path, IntegrityStatus.CORRUPTED, case, "target file still exists")

        if live is None:
            return FileReport(path, IntegrityStatus.CORRUPTED, case, "target file not found")

        lines, ends_with_newline = split_live_lines(live)
        if case in (FileCase.NEW_FILE, FileCase.REPLACEMENT):
            if not lines:
                return FileReport(path, IntegrityStatus.CORRUPTED, case, "target file is empty")
            updated = _rebuild_additions(file_diff.hunks[0], lines, ends_with_newline)
            message = "rebuilt from current file content" if updated else "already matches current file content"
            return FileReport(path, IntegrityStatus.INTACT, case, message, updated=updated)

        return self._process_blocks(file_diff, path, lines, ends_with_newline)

    def _process_blocks(
        self,
        file_diff: FileDiff,
        path: str,
        lines: List[str],
        ends_with_newline: bool,
    ) -> FileReport:
        blocks, rejected = identify_blocks(file_diff)
        checks = [check_block(block, lines, self.window) for block in blocks]
        report = FileReport(path, IntegrityStatus.INTACT, FileCase.BLOCKS, checks=checks, rejected=rejected)

        if rejected:
            report.status = IntegrityStatus.CORRUPTED
            report.message = f"{len(rejected)} block(s) mix additions and deletions without context"
            return report
        broken = [check for check in checks if not check.intact]
        if broken:
            report.status = IntegrityStatus.CORRUPTED
            report.message = f"{len(broken)} of {len(checks)} block(s) lost their frames"
            return report

        drifts: Dict[int, int] = {}
        for check in checks:
            previous = drifts.setdefault(check.block.hunk_index, check.drift)
            if previous != check.drift:
                report.status = IntegrityStatus.CORRUPTED
                report.message = f"blocks of hunk {check.block.hunk_index + 1} drifted by different amounts"
                return report

        updated = False
        for hunk_index, drift in drifts.items():
            if drift:
                hunk = file_diff.hunks[hunk_index]
                hunk.old_start += drift
                hunk.new_start += drift
                updated = True
        for check in checks:
            updated = _refresh_block(check, lines, ends_with_newline) or updated

        report.updated = updated
        report.message = "frames intact; block text refreshed" if updated else "frames intact; already up to date"
        return report


def _refresh_block(check: BlockCheck, lines: List[str], ends_with_newline: bool) -> bool:
    block = check.block
    start = block.start_line - 1 + check.drift
    live = lines[start:start + block.size]
    changed = False
    for change, text in zip(block.changes, live):
        if change.text != text:
            change.text = text
            changed = True
    last = block.changes[-1]
    at_eof = start + block.size == len(lines)
    expected_marker = at_eof and not ends_with_newline
    if last.no_newline != expected_marker:
        last.no_newline = expected_marker
        changed = True
    return changed


# ----------------------------------------------------------------- reporting
def _describe_frame(label: str, block: ModificationBlock, frame: Frame | None, intact: bool) -> str:
    if frame is None:
        return f"    {label}: absent"
    state = "intact" if intact else "MISMATCH"
    return (
        f"    {label}: {frame.content.strip()!r} (old line {frame.old_line_number}, "
        f"new line {frame.new_line_number}, expected at {block.frame_line(frame)}) {state}"
    )


def render_report(result: UpgradeResult) -> str:
    """Return a human-readable summary of an upgrade run."""

    lines: List[str] = []
    if result.patch_path is not None:
        lines.append(f"Patch: {result.patch_path.as_posix()}")
    outcome = "rewritten" if result.written else ("refreshable" if result.updated and result.intact else "unchanged")
    lines.append(f"Overall: {result.status.value} ({outcome})")
    if result.backup is not None:
        lines.append(f"Backup: {result.backup.as_posix()}")
    for report in result.files:
        lines.append(f"File: {report.path}")
        lines.append(f"  Status: {report.status.value} [{report.case.value}]")
        if report.message:
            lines.append(f"  {report.message}")
        for index, check in enumerate(report.checks, start=1):
            block = check.block
            kind = "addition" if block.kind is ChangeKind.ADD else "deletion"
            drift = f", drift {check.drift:+d}" if check.drift else ""
            lines.append(
                f"  Block {index} ({kind}, hunk {block.hunk_index + 1}, line {block.start_line}, "
                f"{block.size} line(s){drift})"
            )
            lines.append(_describe_frame("Top Frame", block, block.top_frame, check.top_intact))
            lines.append(_describe_frame("Bottom Frame", block, block.bottom_frame, check.bottom_intact))
        for rejected in report.rejected:
            lines.append(
                f"  Rejected block in hunk {rejected.hunk_index + 1} at change {rejected.change_index + 1}: "
                f"{rejected.reason}"
            )
    return "\n".join(lines)


__all__ = [
    "BlockCheck",
    "FileCase",
    "FileReport",
    "Frame",
    "IntegrityStatus",
    "ModificationBlock",
    "PatchUpgrader",
    "RejectedBlock",
    "UpgradeResult",
    "check_block",
    "identify_blocks",
    "locate_block",
    "render_report",
    "split_live_lines",
]
