"""Execute compute-block scripts from throwaway executable files."""

from __future__ import annotations

import logging
import os
import secrets
import shlex
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path

from ..telemetry import emit_event

LOGGER = logging.getLogger(__name__)

SCRIPT_PREFIX = "taylored-temp-script-"


class ScriptExecutionError(RuntimeError):
    """Raised when a script cannot be spawned or exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        *,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


@dataclass(slots=True)
class ScriptResult:
    """Captured output of a successful script run."""

    stdout: str
    stderr: str
    exit_code: int
    duration: float


def run_script(content: str, *, cwd: Path | str, temp_dir: Path | str | None = None) -> ScriptResult:
    """Write ``content`` to an executable temp file and run it from ``cwd``.

    The file lives outside the working tree (``temp_dir`` or the system temp
    directory) so concurrent runs never dirty the checkout.  There is no
    timeout.  The file is removed afterwards; a failed removal is only logged.
    """

    directory = Path(temp_dir) if temp_dir is not None else Path(tempfile.gettempdir())
    name = f"{SCRIPT_PREFIX}{int(time.time() * 1000)}-{secrets.token_hex(3)}"
    script_path = directory / name
    started = time.monotonic()
    try:
        try:
            script_path.write_text(content, encoding="utf-8")
            os.chmod(script_path, 0o755)
        except OSError as error:
            raise ScriptExecutionError(f"Failed to prepare script file {script_path}: {error}") from error

        try:
            process = subprocess.run(  # noqa: S602 - executing user-authored compute blocks is the point
                shlex.quote(str(script_path)),
                cwd=Path(cwd),
                shell=True,
                capture_output=True,
                text=False,
                check=False,
            )
        except OSError as error:
            raise ScriptExecutionError(f"Failed to start script: {error}") from error

        stdout = process.stdout.decode("utf-8", errors="replace") if process.stdout else ""
        stderr = process.stderr.decode("utf-8", errors="replace") if process.stderr else ""
        duration = time.monotonic() - started
        if process.returncode != 0:
            emit_event("script.failed", exit_code=process.returncode, duration=round(duration, 3))
            raise ScriptExecutionError(
                f"Script exited with code {process.returncode}.",
                stdout=stdout,
                stderr=stderr,
                exit_code=process.returncode,
            )
        emit_event("script.completed", exit_code=0, duration=round(duration, 3), stdout_bytes=len(stdout))
        return ScriptResult(stdout=stdout, stderr=stderr, exit_code=process.returncode, duration=duration)
    finally:
        try:
            script_path.unlink(missing_ok=True)
        except OSError as error:
            LOGGER.warning("Failed to delete temporary script %s: %s", script_path, error)


__all__ = ["SCRIPT_PREFIX", "ScriptExecutionError", "ScriptResult", "run_script"]
