"""Repository-level settings loaded from ``taylored.yaml``."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import (
    DEFAULT_BASE_BRANCH,
    DEFAULT_BRANCH_PREFIX,
    DEFAULT_MAX_WORKERS,
    FRAME_SEARCH_WINDOW,
)

DEFAULT_CONFIG_NAME = "taylored.yaml"
MAX_WORKERS_ENV = "TAYLORED_MAX_WORKERS"


class ConfigError(ValueError):
    """Raised when the settings file cannot be read or validated."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False)


class TayloredSettings(RecordModel):
    """Knobs shared by the synthesis, upgrade and automatic drivers."""

    base_branch: str = DEFAULT_BASE_BRANCH
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    extensions: List[str] = Field(default_factory=list)
    exclude: List[str] = Field(default_factory=list)
    frame_window: int = Field(default=FRAME_SEARCH_WINDOW, ge=0)
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)

    @field_validator("base_branch", "branch_prefix")
    @classmethod
    def _require_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("must be a non-empty string")
        return cleaned

    @field_validator("extensions")
    @classmethod
    def _normalise_extensions(cls, value: List[str]) -> List[str]:
        return normalise_extensions(value)

    @field_validator("exclude")
    @classmethod
    def _normalise_exclude(cls, value: List[str]) -> List[str]:
        return [item.strip().strip("/") for item in value if item.strip().strip("/")]


def normalise_extensions(values: List[str] | str) -> List[str]:
    """Return ``values`` as a de-duplicated list of dotted extensions."""
    if isinstance(values, str):
        values = values.split(",")
    result: List[str] = []
    for raw in values:
        item = raw.strip()
        if not item:
            continue
        if not item.startswith("."):
            item = f".{item}"
        if item not in result:
            result.append(item)
    return result


def load_settings(repo_root: Path | str, config_path: Path | str | None = None) -> TayloredSettings:
    """Load settings for ``repo_root``.

    Without an explicit ``config_path`` the optional ``taylored.yaml`` at the
    repository root is used and defaults apply when it is missing.  An explicit
    path that does not exist is an error.
    """

    root = Path(repo_root)
    if config_path is None:
        path = root / DEFAULT_CONFIG_NAME
        data = _read_yaml(path) if path.exists() else {}
    else:
        path = Path(config_path)
        if not path.is_absolute():
            path = root / path
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}", path=path)
        data = _read_yaml(path)

    override = os.getenv(MAX_WORKERS_ENV)
    if override:
        try:
            data["max_workers"] = int(override)
        except ValueError as error:
            raise ConfigError(f"{MAX_WORKERS_ENV} must be an integer, got {override!r}", path=path) from error

    try:
        return TayloredSettings.model_validate(data)
    except ValidationError as error:
        raise ConfigError(f"Invalid configuration in {path}: {error}", path=path) from error


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config: {error}", path=path) from error
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.", path=path)
    return data


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "TayloredSettings",
    "load_settings",
    "normalise_extensions",
]
