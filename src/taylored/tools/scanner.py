"""Locate source files that may carry marker blocks."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List

from ..constants import ALWAYS_EXCLUDED_DIRS


def find_files(
    root: Path | str,
    extensions: Iterable[str],
    *,
    exclude: Iterable[str] = (),
) -> List[Path]:
    """Return files under ``root`` whose suffix is in ``extensions``.

    Directories named ``.git`` or ``.taylored`` are never entered.  ``exclude``
    entries match either a directory name at any depth or a root-relative
    directory path.  Results are sorted root-relative POSIX paths.
    """

    base = Path(root).resolve()
    wanted = {ext if ext.startswith(".") else f".{ext}" for ext in extensions}
    if not wanted:
        return []

    excluded_names = set(ALWAYS_EXCLUDED_DIRS)
    excluded_paths = set()
    for item in exclude:
        cleaned = item.strip().strip("/")
        if not cleaned:
            continue
        if "/" in cleaned:
            excluded_paths.add(cleaned)
        else:
            excluded_names.add(cleaned)

    found: List[Path] = []
    for current, dirnames, filenames in os.walk(base):
        current_path = Path(current)
        relative_dir = current_path.relative_to(base)
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in excluded_names and (relative_dir / name).as_posix() not in excluded_paths
        )
        for filename in filenames:
            if Path(filename).suffix in wanted:
                found.append(relative_dir / filename)
    return sorted(found, key=lambda item: item.as_posix())


def read_text_file(path: Path) -> str:
    """Read ``path`` as UTF-8 without translating line endings."""

    with path.open("r", encoding="utf-8", newline="") as handle:
        return handle.read()


def write_text_file(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` as UTF-8 without translating line endings."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(content)


__all__ = ["find_files", "read_text_file", "write_text_file"]
