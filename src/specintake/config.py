"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for specintake:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.specintake/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Config file** -- A single :class:`~specintake.models.IntakeConfig`
  JSON file storing parser timeouts, the validation default, and output
  preferences.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the config file into the effective settings.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so a crash never leaves a half-written config.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from specintake.exceptions import ConfigError
from specintake.models import IntakeConfig

_APP_NAME = "specintake"
_CONFIG_FILENAME = "config.json"

ENV_PARSE_TIMEOUT = "SPECINTAKE_PARSE_TIMEOUT"
ENV_IDLE_TIMEOUT = "SPECINTAKE_IDLE_TIMEOUT"
ENV_VALIDATE = "SPECINTAKE_VALIDATE"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/specintake/`` (default ``~/.config/specintake/``).
    On macOS/Windows: ``~/.specintake/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/specintake/`` (default ``~/.local/share/specintake/``).
    On macOS/Windows: ``~/.specintake/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created next to *path* so that ``os.replace`` is an
    atomic rename on POSIX systems. On any failure the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config file ---


def config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> IntakeConfig:
    """Load the configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~specintake.models.IntakeConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = config_path()
    if not path.is_file():
        return IntakeConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return IntakeConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: IntakeConfig) -> None:
    """Persist the configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be an integer, got: {value}") from None


def _env_bool(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if not value:
        return None
    return value.lower() in ("1", "true", "yes", "on")


def resolve_config(
    cli_parse_timeout_ms: Optional[int] = None,
    cli_validate: Optional[bool] = None,
    cli_format: Optional[str] = None,
) -> IntakeConfig:
    """Resolve the effective configuration.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``SPECINTAKE_PARSE_TIMEOUT``,
           ``SPECINTAKE_IDLE_TIMEOUT``, ``SPECINTAKE_VALIDATE``)
        3. User config (``~/.config/specintake/config.json``)
        4. Defaults

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    data = load_config().model_dump()

    env_parse = _env_int(ENV_PARSE_TIMEOUT)
    if env_parse is not None:
        data["parse_timeout_ms"] = env_parse
    env_idle = _env_int(ENV_IDLE_TIMEOUT)
    if env_idle is not None:
        data["idle_timeout_ms"] = env_idle
    env_validate = _env_bool(ENV_VALIDATE)
    if env_validate is not None:
        data["validate_api"] = env_validate

    if cli_parse_timeout_ms is not None:
        data["parse_timeout_ms"] = cli_parse_timeout_ms
    if cli_validate is not None:
        data["validate_api"] = cli_validate
    if cli_format is not None:
        data["output"]["format"] = cli_format

    try:
        return IntakeConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
