"""Host configuration with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for feedauth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.feedauth/`` on macOS and Windows. See :func:`get_config_dir`.
* **Host configuration** -- :class:`HostConfiguration`, a loosely-typed
  JSON document shared with the host package manager. feedauth only owns
  the ``tokenCache`` and ``feedAuth`` keys and preserves everything else.
* **Settings resolution** -- :func:`load_settings` merges environment
  variables over the ``feedAuth`` key over model defaults.
* **Pipeline tokens** -- :func:`get_pipeline_token` reads the CI-injected
  ``SYSTEM_ACCESSTOKEN``.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) with ``0o600`` permissions, since the document
holds bearer tokens.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from feedauth.exceptions import ConfigError
from feedauth.models import FeedAuthSettings

_APP_NAME = "feedauth"
_CONFIG_FILENAME = "config.json"

SETTINGS_KEY = "feedAuth"
"""Top-level host configuration key holding :class:`FeedAuthSettings`."""

PIPELINE_TOKEN_ENV = "SYSTEM_ACCESSTOKEN"
"""Environment variable carrying an out-of-band token (Azure Pipelines)."""


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/feedauth/`` (default ``~/.config/feedauth/``).
    On macOS/Windows: ``~/.feedauth/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    """Return the host configuration file path.

    ``$FEEDAUTH_CONFIG`` wins when set; otherwise ``<config_dir>/config.json``.
    """
    override = os.environ.get("FEEDAUTH_CONFIG")
    if override:
        return Path(override).expanduser()
    return get_config_dir() / _CONFIG_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. Permissions are
    restricted to ``0o600`` before any content is written. On any failure
    the temp file is cleaned up and the exception re-raised.
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
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
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


# --- Host configuration ---


class HostConfiguration:
    """The JSON configuration document shared with the host package manager.

    Values are returned raw (plain dicts, lists, strings); callers validate
    the keys they own. The file is re-read on every access so that tokens
    written by other processes are picked up.

    Args:
        path: Location of the document. Defaults to :func:`get_config_path`.

    Example::

        configuration = HostConfiguration()
        cache = configuration.get("tokenCache") or {}
        configuration.update({"tokenCache": cache})
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path) if path is not None else get_config_path()

    @property
    def path(self) -> Path:
        """The filesystem path of the configuration document."""
        return self._path

    def load(self) -> dict[str, Any]:
        """Read the whole document.

        Returns:
            The parsed top-level object, or an empty dict when the file does
            not exist.

        Raises:
            ConfigError: If the file cannot be read, is not valid JSON, or
                its top level is not an object.
        """
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            raise ConfigError(f"Invalid host configuration at {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(
                f"Invalid host configuration at {self._path}: top level must be an object"
            )
        return data

    def get(self, key: str) -> Any:
        """Return the raw value stored under *key*, or ``None`` if absent."""
        return self.load().get(key)

    def update(self, values: Mapping[str, Any]) -> None:
        """Merge top-level *values* into the document and write it atomically.

        Keys not present in *values* are preserved.

        Raises:
            ConfigError: If the existing document is invalid.
            OSError: If the file cannot be written.
        """
        data = self.load()
        data.update(values)
        _atomic_write(self._path, json.dumps(data, indent=2) + "\n")


# --- Settings resolution ---


_ENV_OVERRIDES = {
    "FEEDAUTH_CLI": "cli_command",
    "FEEDAUTH_TIMEOUT": "command_timeout",
    "FEEDAUTH_SAFETY_MARGIN": "safety_margin_seconds",
}


def load_settings(configuration: Optional[HostConfiguration] = None) -> FeedAuthSettings:
    """Resolve :class:`~feedauth.models.FeedAuthSettings` with full precedence.

    Precedence (high to low):
        1. Environment variables (``FEEDAUTH_CLI``, ``FEEDAUTH_TIMEOUT``,
           ``FEEDAUTH_SAFETY_MARGIN``)
        2. The ``feedAuth`` key of the host configuration
        3. Model defaults

    Args:
        configuration: Host configuration to read. ``None`` skips the file
            and uses defaults plus environment.

    Raises:
        ConfigError: If the ``feedAuth`` key or an override fails validation.
    """
    raw: dict[str, Any] = {}
    if configuration is not None:
        stored = configuration.get(SETTINGS_KEY)
        if stored is not None and not isinstance(stored, dict):
            raise ConfigError(f"'{SETTINGS_KEY}' must be an object")
        raw.update(stored or {})

    for env_var, field_name in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            # Drop any camelCase spelling from the file so the override wins.
            raw.pop(FeedAuthSettings.model_fields[field_name].alias, None)
            raw[field_name] = value

    try:
        return FeedAuthSettings.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid feedauth settings: {exc}") from exc


def get_pipeline_token() -> Optional[str]:
    """Return the CI-injected access token, or ``None`` when unset or empty."""
    return os.environ.get(PIPELINE_TOKEN_ENV) or None
