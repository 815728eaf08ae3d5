from __future__ import annotations

import pytest

from taylored.patching.errors import PatchPurityError
from taylored.patching.purity import analyze_purity, ensure_pure, is_pure

ADDITION = "--- a/f\n+++ b/f\n@@ -1 +1,2 @@\n keep\n+new\n"
DELETION = "--- a/f\n+++ b/f\n@@ -1,2 +1 @@\n keep\n-old\n"
MIXED = (
    "--- a/f\n+++ b/f\n@@ -1,2 +1,2 @@\n keep\n-old\n+new\n"
    "--- a/g\n+++ b/g\n@@ -1 +1,3 @@\n keep\n+one\n+two\n"
)


def test_pure_addition_and_deletion() -> None:
    assert analyze_purity(ADDITION).direction == "addition"
    assert analyze_purity(DELETION).direction == "deletion"
    assert is_pure(ADDITION) and is_pure(DELETION)


def test_empty_diff_is_pure() -> None:
    report = analyze_purity("")

    assert report.is_empty
    assert report.is_pure
    assert report.direction == "empty"


def test_mixed_diff_counts_across_files() -> None:
    report = analyze_purity(MIXED)

    assert (report.additions, report.deletions) == (3, 1)
    assert report.direction == "mixed"

    with pytest.raises(PatchPurityError) as excinfo:
        ensure_pure(MIXED, source="feature")

    assert excinfo.value.additions == 3
    assert excinfo.value.deletions == 1
    assert "feature" in str(excinfo.value)
    assert "3 addition(s) and 1 deletion(s)" in str(excinfo.value)
