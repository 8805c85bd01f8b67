"""Tests for specintake.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from specintake.config import (
    _atomic_write,
    config_path,
    get_config_dir,
    get_data_dir,
    load_config,
    resolve_config,
    save_config,
)
from specintake.exceptions import ConfigError
from specintake.models import IntakeConfig, OutputConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPathsLinux:
    """XDG paths on Linux (the default XDG platform)."""

    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specintake.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "specintake"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("specintake.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        result = get_config_dir()
        assert result == custom / "specintake"
        assert result.is_dir()

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specintake.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".local" / "share" / "specintake"
        assert result.is_dir()


class TestXDGPathsFallback:
    """Fallback paths on non-XDG platforms (macOS, Windows)."""

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specintake.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".specintake"
        assert result.is_dir()

    def test_data_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specintake.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".specintake" / "logs"
        assert result.is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        _atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"

    def test_no_temp_files_left_on_success(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "content")
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("specintake.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Config file
# ---------------------------------------------------------------------------


class TestConfigFile:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        config = load_config()
        assert config.parse_timeout_ms == 180000
        assert config.idle_timeout_ms == 60000
        assert config.validate_api is False

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        config = IntakeConfig(parse_timeout_ms=5000, output=OutputConfig(format="json"))
        save_config(config)
        assert load_config() == config

    def test_path_is_inside_config_dir(self, isolated_config: Path) -> None:
        assert config_path() == isolated_config / "config" / "specintake" / "config.json"

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        config_path().write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_config()

    def test_load_invalid_schema_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(config_path(), {"parse_timeout_ms": -1})
        with pytest.raises(ConfigError):
            load_config()

    def test_timeouts_in_seconds(self) -> None:
        config = IntakeConfig(parse_timeout_ms=1500, idle_timeout_ms=250)
        assert config.parse_timeout == 1.5
        assert config.idle_timeout == 0.25


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """Test the full precedence chain: CLI > env > file > defaults."""

    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_config() == IntakeConfig()

    def test_file_overrides_defaults(self, isolated_config: Path) -> None:
        save_config(IntakeConfig(parse_timeout_ms=1000))
        assert resolve_config().parse_timeout_ms == 1000

    def test_env_overrides_file(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_config(IntakeConfig(parse_timeout_ms=1000, validate_api=False))
        monkeypatch.setenv("SPECINTAKE_PARSE_TIMEOUT", "2000")
        monkeypatch.setenv("SPECINTAKE_IDLE_TIMEOUT", "3000")
        monkeypatch.setenv("SPECINTAKE_VALIDATE", "yes")
        config = resolve_config()
        assert config.parse_timeout_ms == 2000
        assert config.idle_timeout_ms == 3000
        assert config.validate_api is True

    def test_cli_overrides_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECINTAKE_PARSE_TIMEOUT", "2000")
        monkeypatch.setenv("SPECINTAKE_VALIDATE", "false")
        config = resolve_config(cli_parse_timeout_ms=4000, cli_validate=True, cli_format="plain")
        assert config.parse_timeout_ms == 4000
        assert config.validate_api is True
        assert config.output.format == "plain"

    def test_env_not_an_integer(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECINTAKE_PARSE_TIMEOUT", "soon")
        with pytest.raises(ConfigError, match="SPECINTAKE_PARSE_TIMEOUT"):
            resolve_config()

    def test_cli_value_out_of_range(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config(cli_parse_timeout_ms=0)
