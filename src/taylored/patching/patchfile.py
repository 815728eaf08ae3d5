"""Patch-file storage: naming, ``Subject:`` messages and backups."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..constants import BACKUP_SUFFIX, SUBJECT_PREFIX, TAYLORED_DIR_NAME, TAYLORED_FILE_EXTENSION
from ..utils.slug import branch_file_stem
from .errors import PatchFileError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PatchDocument:
    """A patch file split into its optional message and its diff body."""

    message: str | None
    body: str

    def render(self) -> str:
        return embed_message(self.body, self.message)


def split_message(content: str) -> PatchDocument:
    """Split ``content`` into its ``Subject: [PATCH]`` message and diff body.

    Only a first line carrying the prefix counts as a message; the single
    blank separator line after it is consumed as well.
    """

    if not content.startswith(SUBJECT_PREFIX):
        return PatchDocument(message=None, body=content)
    first, _, rest = content.partition("\n")
    message = first[len(SUBJECT_PREFIX):].strip()
    if rest.startswith("\n"):
        rest = rest[1:]
    return PatchDocument(message=message or None, body=rest)


def embed_message(body: str, message: str | None) -> str:
    """Return a patch document made of ``message`` (if any) and ``body``.

    An empty body with a message yields a message-only patch; a body without
    a message is returned as is, newline-terminated.
    """

    if body and not body.endswith("\n"):
        body = f"{body}\n"
    if not message:
        return body
    return f"{SUBJECT_PREFIX}{message.strip()}\n\n{body}"


def patch_directory(repo_root: Path | str, *, create: bool = False) -> Path:
    directory = Path(repo_root) / TAYLORED_DIR_NAME
    if create:
        directory.mkdir(parents=True, exist_ok=True)
    return directory


def resolve_patch_name(name: str) -> str:
    """Return ``name`` with the patch extension appended when missing."""

    cleaned = Path(name.strip()).name
    if not cleaned:
        raise PatchFileError("Patch name must not be empty")
    if cleaned.endswith(TAYLORED_FILE_EXTENSION):
        return cleaned
    return f"{cleaned}{TAYLORED_FILE_EXTENSION}"


def patch_path_for(repo_root: Path | str, name: str) -> Path:
    return patch_directory(repo_root) / resolve_patch_name(name)


def resolve_existing_patch(repo_root: Path | str, name: str) -> Path:
    """Return the stored patch for ``name`` or raise :class:`PatchFileError`."""

    path = patch_path_for(repo_root, name)
    if not path.is_file():
        raise PatchFileError(f"Patch file not found: {path}", details={"path": path.as_posix()})
    return path


def branch_patch_name(branch: str) -> str:
    return f"{branch_file_stem(branch)}{TAYLORED_FILE_EXTENSION}"


def block_patch_name(number: int) -> str:
    return f"{number}{TAYLORED_FILE_EXTENSION}"


def list_patch_files(repo_root: Path | str) -> List[Path]:
    """Return stored patch files sorted by name; backups are excluded."""

    directory = patch_directory(repo_root)
    if not directory.is_dir():
        return []
    return sorted(
        (path for path in directory.iterdir() if path.is_file() and path.suffix == TAYLORED_FILE_EXTENSION),
        key=lambda item: item.name,
    )


def backup_path_for(path: Path) -> Path:
    return path.with_name(f"{path.name}{BACKUP_SUFFIX}")


@dataclass(slots=True)
class WriteOutcome:
    """What :func:`write_with_backup` did to the patch file."""

    path: Path
    written: bool
    backup: Path | None = None


def write_with_backup(path: Path, content: str) -> WriteOutcome:
    """Overwrite ``path`` with ``content`` after copying the old bytes aside.

    Nothing is written when the content is already identical, so rewriting an
    up-to-date patch leaves no backup behind.
    """

    backup: Path | None = None
    if path.exists():
        if path.read_text(encoding="utf-8") == content:
            return WriteOutcome(path=path, written=False)
        backup = backup_path_for(path)
        shutil.copy2(path, backup)
        LOGGER.info("Backed up %s to %s", path, backup)
    else:
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return WriteOutcome(path=path, written=True, backup=backup)


def write_new_patch(path: Path, content: str) -> Path:
    """Create ``path``; an existing patch is never overwritten."""

    if path.exists():
        raise PatchFileError(f"Refusing to overwrite existing patch {path}", details={"path": path.as_posix()})
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


__all__ = [
    "PatchDocument",
    "WriteOutcome",
    "backup_path_for",
    "block_patch_name",
    "branch_patch_name",
    "embed_message",
    "list_patch_files",
    "patch_directory",
    "patch_path_for",
    "resolve_existing_patch",
    "resolve_patch_name",
    "split_message",
    "write_new_patch",
    "write_with_backup",
]
