"""Helpers turning branch names and block ids into safe ref and file names."""

from __future__ import annotations

import hashlib
import re
from typing import Pattern

_LOWERCASE_PATTERN: Pattern[str] = re.compile(r"[^a-z0-9_.-]+")
_MIXED_CASE_PATTERN: Pattern[str] = re.compile(r"[^A-Za-z0-9_.-]+")
_HYPHEN_COLLAPSE = re.compile(r"-{2,}")
_DOT_RUN = re.compile(r"\.{2,}")
_PATH_SEPARATORS = re.compile(r"[/\\]")


def slugify(
    value: str | None,
    *,
    fallback: str = "item",
    max_length: int = 80,
    lowercase: bool = True,
) -> str:
    """Normalize ``value`` into a slug usable inside a git ref component."""
    source = (value or "").strip()
    if not source:
        source = fallback

    processed_fallback = (fallback or "").strip() or "item"
    if lowercase:
        source = source.lower()
        processed_fallback = processed_fallback.lower()

    pattern = _LOWERCASE_PATTERN if lowercase else _MIXED_CASE_PATTERN
    slug = _normalize(source, pattern) or _normalize(processed_fallback, pattern) or "item"

    if len(slug) > max_length:
        slug = abbreviate_slug(slug, fallback=processed_fallback, max_length=max_length)
    return slug


def abbreviate_slug(segment: str, *, fallback: str = "item", max_length: int = 80) -> str:
    """Trim ``segment`` to ``max_length`` while preserving uniqueness via hashing."""
    slug = segment.strip("-") or fallback.strip("-") or "item"
    if len(slug) <= max_length:
        return slug

    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:8]
    prefix_length = max(max_length - len(digest) - 1, 1)
    prefix = slug[:prefix_length].rstrip("-.") or slug[:prefix_length]
    return f"{prefix}-{digest}"


def branch_file_stem(branch: str) -> str:
    """Return the patch file stem for ``branch`` (path separators become ``-``)."""
    return _PATH_SEPARATORS.sub("-", branch.strip())


def _normalize(value: str, pattern: Pattern[str]) -> str:
    slug = pattern.sub("-", value)
    slug = _DOT_RUN.sub(".", slug)
    slug = _HYPHEN_COLLAPSE.sub("-", slug)
    slug = slug.strip("-.")
    if slug.endswith(".lock"):
        slug = slug[: -len(".lock")]
    return slug


__all__ = ["abbreviate_slug", "branch_file_stem", "slugify"]
