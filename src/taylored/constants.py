"""Shared names and defaults for patch storage and synthesis."""

from __future__ import annotations

TAYLORED_DIR_NAME = ".taylored"
TAYLORED_FILE_EXTENSION = ".taylored"
BACKUP_SUFFIX = ".backup"

DEFAULT_BASE_BRANCH = "main"
DEFAULT_BRANCH_PREFIX = "taylored"
OFFSET_BRANCH_PREFIX = "taylored-offset"

FRAME_SEARCH_WINDOW = 5
DEFAULT_MAX_WORKERS = 4

SUBJECT_PREFIX = "Subject: [PATCH] "
AUTO_COMMIT_PREFIX = "AUTO:"

# Directories never scanned for marker blocks.
ALWAYS_EXCLUDED_DIRS = (".git", TAYLORED_DIR_NAME)

__all__ = [
    "ALWAYS_EXCLUDED_DIRS",
    "AUTO_COMMIT_PREFIX",
    "BACKUP_SUFFIX",
    "DEFAULT_BASE_BRANCH",
    "DEFAULT_BRANCH_PREFIX",
    "DEFAULT_MAX_WORKERS",
    "FRAME_SEARCH_WINDOW",
    "OFFSET_BRANCH_PREFIX",
    "SUBJECT_PREFIX",
    "TAYLORED_DIR_NAME",
    "TAYLORED_FILE_EXTENSION",
]
