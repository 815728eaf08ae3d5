from __future__ import annotations

from pathlib import Path

import pytest

from taylored.config import MAX_WORKERS_ENV, ConfigError, TayloredSettings, load_settings, normalise_extensions


def test_defaults_when_file_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(MAX_WORKERS_ENV, raising=False)

    settings = load_settings(tmp_path)

    assert settings == TayloredSettings()
    assert settings.base_branch == "main"
    assert settings.frame_window == 5


def test_load_yaml_and_normalise(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(MAX_WORKERS_ENV, raising=False)
    (tmp_path / "taylored.yaml").write_text(
        "base_branch: develop\n"
        "extensions: [py, .js, py]\n"
        "exclude: ['build/', vendor]\n"
        "max_workers: 2\n",
        encoding="utf-8",
    )

    settings = load_settings(tmp_path)

    assert settings.base_branch == "develop"
    assert settings.extensions == [".py", ".js"]
    assert settings.exclude == ["build", "vendor"]
    assert settings.max_workers == 2


def test_environment_overrides_workers(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(MAX_WORKERS_ENV, "8")

    assert load_settings(tmp_path).max_workers == 8


@pytest.mark.parametrize(
    "content",
    [
        "unknown_key: 1\n",
        "max_workers: 0\n",
        "base_branch: '  '\n",
        "- just\n- a list\n",
        "base_branch: [unclosed\n",
    ],
)
def test_invalid_config_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, content: str) -> None:
    monkeypatch.delenv(MAX_WORKERS_ENV, raising=False)
    (tmp_path / "taylored.yaml").write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_settings(tmp_path)

    assert excinfo.value.path == tmp_path / "taylored.yaml"


def test_explicit_missing_config_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_settings(tmp_path, "custom.yaml")


def test_normalise_extensions_from_csv() -> None:
    assert normalise_extensions(" py, ,ts,.py ") == [".py", ".ts"]
