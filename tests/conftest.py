from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from taylored.tools.vcs import GitRepository  # noqa: E402


@dataclass(slots=True)
class SandboxRepo:
    """Fixture payload wrapping a throwaway git repository on ``main``."""

    root: Path
    repo: GitRepository

    def write(self, relative: str, content: str) -> Path:
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        return target

    def read(self, relative: str) -> str:
        with (self.root / relative).open("r", encoding="utf-8", newline="") as handle:
            return handle.read()

    def commit(self, files: Mapping[str, str], message: str = "update fixtures") -> str:
        for relative, content in files.items():
            self.write(relative, content)
        self.git("add", "--all")
        self.git("commit", "--no-verify", "-m", message)
        return self.repo.head_commit()

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=self.root,
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout

    def branches(self, pattern: str = "*") -> list[str]:
        return self.repo.list_branches(pattern)

    def patch_dir(self) -> Path:
        return self.root / ".taylored"


@pytest.fixture()
def sandbox(tmp_path: Path) -> SandboxRepo:
    """Create an empty git repository with one initial commit on ``main``."""

    repo_root = tmp_path / "sandbox"
    repo = GitRepository.initialise(repo_root, initial_branch="main")
    return SandboxRepo(root=repo.root, repo=repo)
