"""Configuration for rehydrate.

Settings come from, in increasing priority:

1. Built-in defaults
2. A YAML file (``Settings.from_file`` / ``Settings.load(path)``)
3. ``REHYDRATE_*`` environment variables

Usage:
    >>> from rehydrate.config import Settings, configure_logging
    >>>
    >>> settings = Settings.load("rehydrate.yaml")
    >>> configure_logging(settings.log_level)
    >>> store = settings.create_blob_store()
    >>> key = settings.storage_key("auth")

Environment variables:
    REHYDRATE_MODE=demo
    REHYDRATE_DEBUG=true
    REHYDRATE_LOG_LEVEL=DEBUG
    REHYDRATE_STORAGE_BACKEND=filesystem
    REHYDRATE_STORAGE_PATH=.rehydrate/storage
    REHYDRATE_KEY_PREFIX=store
    REHYDRATE_SEPARATE_DEV_KEYS=false
    REHYDRATE_REGISTRY=myapp.stores:registry
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from rehydrate.storage.base import BlobStore
from rehydrate.storage.factory import get_blob_store
from rehydrate.storage.keys import AppMode, storage_key

logger = logging.getLogger(__name__)

ENV_PREFIX = "REHYDRATE_"


# =============================================================================
# Errors
# =============================================================================


class ConfigError(Exception):
    """Base configuration error."""

    pass


# =============================================================================
# Value parsing
# =============================================================================


def parse_env_value(value: str) -> Any:
    """Parse an environment string to an appropriate type."""
    lowered = value.strip().lower()

    # Boolean
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False

    # None
    if lowered in ("null", "none", ""):
        return None

    # Number
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        pass

    # JSON array/object
    if value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


# =============================================================================
# Settings
# =============================================================================


@dataclass(frozen=True)
class Settings:
    """Runtime settings.

    Attributes:
        mode: Application mode, selects the storage key suffix.
        debug: Force debug traces for every migration.
        log_level: Level for the ``rehydrate`` logger.
        storage_backend: Blob store backend name.
        storage_path: Base path for the filesystem backend.
        namespace: Storage namespace.
        key_prefix: Prefix for storage keys.
        separate_dev_keys: Whether development mode gets its own keys.
        registry: ``module:attribute`` locating the application's registry.
        storage_options: Extra keyword arguments for the backend.
    """

    mode: AppMode = AppMode.LIVE
    debug: bool = False
    log_level: str = "WARNING"
    storage_backend: str = "filesystem"
    storage_path: str = ".rehydrate/storage"
    namespace: str = "default"
    key_prefix: str = "store"
    separate_dev_keys: bool = False
    registry: str | None = None
    storage_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Settings":
        """Create settings from a mapping, ignoring unknown keys."""
        return cls()._merge(values)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Create settings from ``REHYDRATE_*`` environment variables."""
        return cls()._merge(_env_values(environ))

    @classmethod
    def from_file(cls, path: str | Path) -> "Settings":
        """Create settings from a YAML file.

        Raises:
            ConfigError: If the file cannot be read or is not a mapping.
        """
        return cls()._merge(_file_values(path))

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "Settings":
        """Load settings from an optional file, then the environment."""
        settings = cls()
        if path is not None:
            settings = settings._merge(_file_values(path))
        return settings._merge(_env_values(environ))

    def _merge(self, values: Mapping[str, Any]) -> "Settings":
        known = {f.name for f in fields(self)}
        updates: dict[str, Any] = {}

        for key, value in values.items():
            if key not in known:
                logger.debug("Ignoring unknown setting '%s'", key)
                continue
            if value is None and key != "registry":
                continue
            updates[key] = value

        if "mode" in updates and not isinstance(updates["mode"], AppMode):
            updates["mode"] = AppMode.from_string(str(updates["mode"]))
        for key in ("debug", "separate_dev_keys"):
            if key in updates:
                updates[key] = _as_bool(updates[key])
        for key in ("log_level", "storage_backend", "storage_path", "namespace", "key_prefix"):
            if key in updates:
                updates[key] = str(updates[key])
        if "log_level" in updates:
            updates["log_level"] = updates["log_level"].upper()
        if "storage_options" in updates:
            options = updates["storage_options"]
            if not isinstance(options, Mapping):
                raise ConfigError("storage_options must be a mapping")
            updates["storage_options"] = {**self.storage_options, **options}

        return replace(self, **updates)

    def storage_key(self, name: str) -> str:
        """Storage key for a store in the configured mode."""
        return storage_key(
            name,
            prefix=self.key_prefix,
            mode=self.mode,
            separate_dev_keys=self.separate_dev_keys,
        )

    def create_blob_store(self) -> BlobStore:
        """Create the configured blob store."""
        options = dict(self.storage_options)
        if self.storage_backend == "filesystem":
            options.setdefault("base_path", self.storage_path)
        options.setdefault("namespace", self.namespace)
        return get_blob_store(self.storage_backend, **options)


def _env_values(environ: Mapping[str, str] | None) -> dict[str, Any]:
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for key, raw in environ.items():
        if key.startswith(ENV_PREFIX):
            name = key[len(ENV_PREFIX) :].lower()
            if name in ("registry", "storage_path", "key_prefix", "namespace"):
                # keep strings verbatim
                values[name] = raw
            else:
                values[name] = parse_env_value(raw)
    return values


def _file_values(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Configuration file {path} must contain a mapping")
    return dict(data)


# =============================================================================
# Logging
# =============================================================================

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | int = "WARNING", fmt: str = LOG_FORMAT) -> logging.Logger:
    """Attach a stream handler to the ``rehydrate`` logger.

    Calling it again replaces the handler instead of adding another one.

    Args:
        level: Log level name or number.
        fmt: Log record format.

    Returns:
        The package logger.
    """
    package_logger = logging.getLogger("rehydrate")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    for handler in list(package_logger.handlers):
        if getattr(handler, "_rehydrate_handler", False):
            package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    handler._rehydrate_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    return package_logger
