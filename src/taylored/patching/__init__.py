"""Unified-diff model, marker blocks and the synthesis/upgrade engines built on them."""

from .blocks import BlockAttributes, BlockKind, BlockParser, ParsedBlock, parse_blocks
from .diff import parse_patch, serialize_patch, tokenize_diff
from .errors import OffsetError, PatchError, PatchFileError, PatchParseError, PatchPurityError
from .integrity import IntegrityStatus, PatchUpgrader, UpgradeResult, identify_blocks, render_report
from .model import Change, ChangeKind, FileDiff, Hunk, Patch
from .offset import OffsetOutcome, OffsetResult, hunks_pairwise_inverted, recalculate_offsets
from .purity import PurityReport, analyze_purity, ensure_pure, is_pure
from .synthesis import CaptureResult, DiffSynthesizer

__all__ = [
    "BlockAttributes",
    "BlockKind",
    "BlockParser",
    "CaptureResult",
    "Change",
    "ChangeKind",
    "DiffSynthesizer",
    "FileDiff",
    "Hunk",
    "IntegrityStatus",
    "OffsetError",
    "OffsetOutcome",
    "OffsetResult",
    "Patch",
    "PatchError",
    "PatchFileError",
    "PatchParseError",
    "PatchPurityError",
    "PatchUpgrader",
    "PurityReport",
    "UpgradeResult",
    "analyze_purity",
    "ensure_pure",
    "hunks_pairwise_inverted",
    "identify_blocks",
    "is_pure",
    "parse_blocks",
    "parse_patch",
    "recalculate_offsets",
    "render_report",
    "serialize_patch",
    "tokenize_diff",
]
