"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for cursetool:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.cursetool/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`. The response cache
  database lives in the cache directory.
* **Global config** -- A single :class:`~cursetool.models.GlobalConfig`
  JSON file storing the catalog base URL, API-key source, worker count,
  and cache lifetimes.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the global config file.
* **API key resolution** -- :func:`resolve_api_key` reads the catalog API
  key from an explicit file, the configured source, or the default key
  file.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from cursetool.exceptions import ConfigError
from cursetool.models import GlobalConfig

_APP_NAME = "cursetool"
_CONFIG_FILENAME = "config.json"
_API_KEY_FILENAME = "api-key"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/cursetool/`` (default ``~/.config/cursetool/``).
    On macOS/Windows: ``~/.cursetool/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the response cache database. Its contents can be deleted at any
    time; they are re-fetched on the next run.

    On Linux/BSD: ``$XDG_CACHE_HOME/cursetool/`` (default ``~/.cache/cursetool/``).
    On macOS/Windows: ``~/.cursetool/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/cursetool/`` (default ``~/.local/share/cursetool/``).
    On macOS/Windows: ``~/.cursetool/logs/``.
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

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed.
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


def write_text_atomic(path: str | Path, data: str) -> None:
    """Public wrapper around :func:`_atomic_write` for generated manifests."""
    _atomic_write(Path(path), data)


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~cursetool.models.GlobalConfig`, or a
        default instance if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def resolve_config(
    cli_base_url: Optional[str] = None,
    cli_jobs: Optional[int] = None,
) -> GlobalConfig:
    """Resolve config with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_base_url``, ``cli_jobs``)
        2. Environment variables (``CURSETOOL_BASE_URL``, ``CURSETOOL_JOBS``)
        3. User config (``~/.config/cursetool/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the config file is invalid or ``CURSETOOL_JOBS``
            is not a positive integer.
    """
    config = load_global_config()

    env_base_url = os.environ.get("CURSETOOL_BASE_URL")
    if cli_base_url is not None:
        config.base_url = cli_base_url
    elif env_base_url:
        config.base_url = env_base_url

    env_jobs = os.environ.get("CURSETOOL_JOBS")
    if cli_jobs is not None:
        config.jobs = cli_jobs
    elif env_jobs:
        try:
            config.jobs = int(env_jobs)
        except ValueError as exc:
            raise ConfigError(f"CURSETOOL_JOBS must be an integer, got {env_jobs!r}") from exc

    if config.jobs < 1:
        raise ConfigError(f"jobs must be at least 1, got {config.jobs}")
    return config


# --- Credential resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if not value:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc
        if not value:
            raise ConfigError(f"Credential file is empty: {path}")
        return value

    raise ConfigError(f"Unknown credential source format: {source}")


def resolve_api_key(config: GlobalConfig, key_file: Optional[str | Path] = None) -> str:
    """Resolve the catalog API key.

    Lookup order:
        1. *key_file*, when given (``--api-key-file``); must exist.
        2. ``config.api_key_source`` (default ``env:CURSEFORGE_API_KEY``).
        3. ``<config_dir>/api-key``.

    Raises:
        ConfigError: If no key can be found.
    """
    if key_file is not None:
        return resolve_credential(f"file:{key_file}")

    try:
        return resolve_credential(config.api_key_source)
    except ConfigError as exc:
        default_file = get_config_dir() / _API_KEY_FILENAME
        if default_file.is_file():
            return resolve_credential(f"file:{default_file}")
        raise ConfigError(
            f"No catalog API key found ({exc}). Set CURSEFORGE_API_KEY, "
            f"write the key to {default_file}, or pass --api-key-file."
        ) from exc


def validate_config_data(data: dict) -> GlobalConfig:
    """Validate a raw config dict, mapping validation errors to ConfigError."""
    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
