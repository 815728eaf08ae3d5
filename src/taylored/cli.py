"""CLI commands for capturing, applying and repairing taylored patches."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .automatic import AutomaticRunner
from .config import ConfigError, TayloredSettings, load_settings
from .patching.apply import apply_patch_file
from .patching.errors import PatchError
from .patching.integrity import PatchUpgrader, render_report
from .patching.offset import recalculate_offsets
from .patching.patchfile import list_patch_files, resolve_existing_patch
from .patching.synthesis import DiffSynthesizer
from .tools.scripts import ScriptExecutionError
from .tools.vcs import GitError, GitRepository

APP_HELP = "Capture, apply and repair drift-tolerant patches stored under .taylored/."

app = typer.Typer(help=APP_HELP)

_REPO_OPTION = typer.Option(".", "--repo", "-r", help="Path inside the git repository to operate on.")
_CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to a taylored.yaml settings file.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress and telemetry events."),
) -> None:
    """Configure logging for the invoked command."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _open(repo: str, config: Optional[str]) -> tuple[GitRepository, TayloredSettings]:
    """Return the repository and its settings, exiting with code 1 on failure."""
    try:
        repository = GitRepository.discover(Path(repo))
        settings = load_settings(repository.root, config)
    except (GitError, ConfigError) as error:
        typer.echo(f"Error: {error}", err=True)
        raise typer.Exit(code=1) from error
    return repository, settings


def _fail(error: Exception) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    if isinstance(error, ScriptExecutionError) and error.stderr:
        typer.echo(error.stderr.rstrip(), err=True)
    if isinstance(error, PatchError) and error.details.get("failing_hunks"):
        for entry in error.details["failing_hunks"]:
            typer.echo(f"  - {entry}", err=True)
    return typer.Exit(code=1)


def _apply(name: str, repo: str, config: Optional[str], *, reverse: bool, check_only: bool) -> None:
    repository, _ = _open(repo, config)
    try:
        path = resolve_existing_patch(repository.root, name)
        result = apply_patch_file(repository, path, reverse=reverse, check_only=check_only)
    except (PatchError, GitError) as error:
        raise _fail(error) from error
    if result.skipped:
        typer.echo(f"{path.name}: empty patch, nothing to do.")
    elif check_only:
        typer.echo(f"{path.name}: {result.operation} check passed.")
    else:
        typer.echo(f"{path.name}: {result.operation} succeeded.")


@app.command()
def save(
    branch: str = typer.Argument(..., help="Branch whose diff from HEAD becomes the patch."),
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Store the diff between HEAD and BRANCH as a pure patch."""
    repository, settings = _open(repo, config)
    try:
        outcome = DiffSynthesizer(repository, settings=settings).save_branch(branch)
    except (PatchError, GitError) as error:
        raise _fail(error) from error
    state = "saved" if outcome.written else "unchanged"
    typer.echo(f"Patch {state}: {outcome.path.as_posix()}")


@app.command()
def add(
    name: str = typer.Argument(..., help="Patch name inside .taylored/ (extension optional)."),
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Apply a stored patch to the working tree."""
    _apply(name, repo, config, reverse=False, check_only=False)


@app.command()
def remove(
    name: str = typer.Argument(..., help="Patch name inside .taylored/ (extension optional)."),
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Revert a stored patch from the working tree."""
    _apply(name, repo, config, reverse=True, check_only=False)


@app.command("verify-add")
def verify_add(
    name: str = typer.Argument(..., help="Patch name inside .taylored/ (extension optional)."),
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Check that a stored patch would apply cleanly."""
    _apply(name, repo, config, reverse=False, check_only=True)


@app.command("verify-remove")
def verify_remove(
    name: str = typer.Argument(..., help="Patch name inside .taylored/ (extension optional)."),
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Check that a stored patch could be reverted cleanly."""
    _apply(name, repo, config, reverse=True, check_only=True)


@app.command("list")
def list_patches(
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List stored patches."""
    repository, _ = _open(repo, config)
    patches = list_patch_files(repository.root)
    if not patches:
        typer.echo("No patches stored.")
        return
    for path in patches:
        typer.echo(path.name)


@app.command()
def upgrade(
    name: str = typer.Argument(..., help="Patch name inside .taylored/ (extension optional)."),
    ref: Optional[str] = typer.Option(None, "--ref", help="Read live files from this git ref instead of the working tree."),
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Verify a patch's frames and refresh it from the live files when intact."""
    repository, settings = _open(repo, config)
    try:
        path = resolve_existing_patch(repository.root, name)
        upgrader = PatchUpgrader(repository.root, window=settings.frame_window, ref=ref, repo=repository)
        result = upgrader.upgrade_file(path)
    except (PatchError, GitError) as error:
        raise _fail(error) from error
    typer.echo(render_report(result))
    if not result.intact:
        raise typer.Exit(code=1)


@app.command()
def offset(
    name: str = typer.Argument(..., help="Patch name inside .taylored/ (extension optional)."),
    base: Optional[str] = typer.Option(None, "--base", "-b", help="Branch the offsets are computed against."),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Override the patch Subject message."),
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Recompute a patch's line offsets relative to a base branch."""
    repository, settings = _open(repo, config)
    try:
        path = resolve_existing_patch(repository.root, name)
        result = recalculate_offsets(
            repository,
            path,
            base_branch=base or settings.base_branch,
            message=message,
            prefix=f"{settings.branch_prefix}-offset",
        )
    except (PatchError, GitError) as error:
        raise _fail(error) from error
    typer.echo(f"{path.name}: {result.outcome.value}")
    if result.backup is not None:
        typer.echo(f"Backup: {result.backup.as_posix()}")


@app.command()
def automatic(
    extensions: Optional[str] = typer.Argument(None, help="Comma-separated file extensions to scan, e.g. 'py,js'."),
    base: Optional[str] = typer.Option(None, "--base", "-b", help="Baseline branch for the captured diffs."),
    exclude: Optional[str] = typer.Option(None, "--exclude", "-e", help="Comma-separated directories to skip."),
    repo: str = _REPO_OPTION,
    config: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Turn every marker block found in the tree into a stored patch."""
    repository, settings = _open(repo, config)
    excluded = [item.strip() for item in (exclude or "").split(",") if item.strip()]
    try:
        summary = AutomaticRunner(repository, settings=settings).run(extensions, base_branch=base, exclude=excluded)
    except (PatchError, GitError, ValueError) as error:
        raise _fail(error) from error

    typer.echo(f"Scanned {summary.scanned_files} file(s).")
    for path in summary.created:
        typer.echo(f"Created {path.relative_to(repository.root).as_posix()}")
    for number in summary.skipped_disabled:
        typer.echo(f"Skipped disabled block {number}")
    for failure in summary.failures:
        typer.echo(f"Block {failure.number} ({failure.file_path}) failed: {failure.error}", err=True)
    if not summary.ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
