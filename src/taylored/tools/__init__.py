"""Collaborator integrations: git, disposable branches, scripts and file scanning."""

from .isolation import IsolatedBranch, isolated_branch, repository_lock
from .scanner import find_files, read_text_file, write_text_file
from .scripts import ScriptExecutionError, ScriptResult, run_script
from .vcs import DiffOutcome, GitError, GitRepository

__all__ = [
    "DiffOutcome",
    "GitError",
    "GitRepository",
    "IsolatedBranch",
    "ScriptExecutionError",
    "ScriptResult",
    "find_files",
    "isolated_branch",
    "repository_lock",
    "read_text_file",
    "run_script",
    "write_text_file",
]
