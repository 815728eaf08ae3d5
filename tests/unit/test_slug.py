from __future__ import annotations

from taylored.tools.isolation import branch_name
from taylored.utils.slug import abbreviate_slug, branch_file_stem, slugify


def test_slugify_produces_ref_safe_components() -> None:
    assert slugify("Feature Login!") == "feature-login"
    assert slugify("a..b", lowercase=False) == "a.b"
    assert slugify("release.lock") == "release"
    assert slugify("   ", fallback="unit") == "unit"


def test_abbreviate_slug_appends_digest() -> None:
    slug = abbreviate_slug("x" * 100, max_length=20)

    assert len(slug) == 20
    assert slug.startswith("x" * 11 + "-")


def test_branch_file_stem_replaces_separators() -> None:
    assert branch_file_stem("feature/sub\\part") == "feature-sub-part"


def test_branch_name_layout() -> None:
    assert branch_name("taylored", 12, timestamp=1700000000000) == "taylored-12-1700000000000"
    assert branch_name("taylored-offset", "My Patch", timestamp=5) == "taylored-offset-My-Patch-5"
