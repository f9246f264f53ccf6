"""Base classes for persisted blob storage.

A blob store keeps one JSON document per key. Stores are the persistence
side of a store runtime: they load the raw value handed to the migration
engine and save the state that comes out of it. Backends only implement raw
text access; JSON handling and error reporting live here.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class StorageError(Exception):
    """Base exception for all storage-related errors."""

    pass


# =============================================================================
# Configuration
# =============================================================================


DEFAULT_CLEANUP_MARKERS = ("temp_", "_tmp", "_cache")


@dataclass
class BlobStoreConfig:
    """Base configuration for all blob stores.

    Attributes:
        namespace: Namespace isolating different apps or environments.
        pretty_print: Whether to indent serialized JSON.
        metadata: Additional backend-specific options.
    """

    namespace: str = "default"
    pretty_print: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Abstract Base Store
# =============================================================================


class BlobStore(ABC):
    """Abstract key-value store for JSON blobs.

    Public operations never raise for ordinary I/O or decoding problems:
    ``load`` returns ``None`` and ``save`` returns ``False``, and the cause is
    logged. Subclasses implement the raw text primitives.
    """

    def __init__(self, config: BlobStoreConfig | None = None) -> None:
        self._config = config or BlobStoreConfig()
        self._lock = threading.RLock()

    @property
    def config(self) -> BlobStoreConfig:
        return self._config

    # -------------------------------------------------------------------------
    # Backend primitives
    # -------------------------------------------------------------------------

    @abstractmethod
    def _read(self, key: str) -> str | None:
        """Read raw text for a key, or None if missing."""
        pass

    @abstractmethod
    def _write(self, key: str, text: str) -> None:
        """Write raw text for a key."""
        pass

    @abstractmethod
    def _remove(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        pass

    @abstractmethod
    def _keys(self) -> list[str]:
        """List all stored keys."""
        pass

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def load(self, key: str) -> Any | None:
        """Load and decode the value stored under a key.

        Args:
            key: Storage key.

        Returns:
            The decoded value, or None if missing or unreadable.
        """
        if not key:
            logger.error("No key given for load")
            return None

        try:
            with self._lock:
                text = self._read(key)
        except Exception as e:
            logger.error("Failed to load '%s': %s", key, e)
            return None

        if text is None:
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON stored under '%s': %s", key, e)
            return None

    def save(self, key: str, value: Any) -> bool:
        """Encode and store a value.

        Args:
            key: Storage key.
            value: JSON-serializable value.

        Returns:
            True if the value was written.
        """
        if not key:
            logger.error("No key given for save")
            return False

        try:
            text = self._serialize(value)
        except (TypeError, ValueError) as e:
            logger.error("Value for '%s' is not JSON-serializable: %s", key, e)
            return False

        try:
            with self._lock:
                self._write(key, text)
        except Exception as e:
            logger.error("Failed to save '%s': %s", key, e)
            return False
        return True

    def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if the key was deleted, False if it didn't exist or failed.
        """
        if not key:
            logger.error("No key given for delete")
            return False
        try:
            with self._lock:
                return self._remove(key)
        except Exception as e:
            logger.error("Failed to delete '%s': %s", key, e)
            return False

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._keys()

    def list_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._keys())

    def clear(self) -> int:
        """Delete every key.

        Returns:
            Number of keys deleted.
        """
        with self._lock:
            keys = self._keys()
            removed = sum(1 for key in keys if self._remove(key))
        logger.info("Cleared %d keys", removed)
        return removed

    def cleanup(self, markers: Iterable[str] = DEFAULT_CLEANUP_MARKERS) -> int:
        """Delete temporary keys.

        Args:
            markers: Substrings marking a key as temporary.

        Returns:
            Number of keys deleted.
        """
        markers = tuple(markers)
        with self._lock:
            stale = [k for k in self._keys() if any(m in k for m in markers)]
            for key in stale:
                self._remove(key)
        if stale:
            logger.info("Removed %d temporary keys", len(stale))
        return len(stale)

    def migrate_keys(self, key_map: Mapping[str, str]) -> int:
        """Copy values from legacy keys to their new keys.

        Legacy keys are left in place. A failure on one key is logged and
        does not stop the others.

        Args:
            key_map: Legacy key -> new key.

        Returns:
            Number of keys copied.
        """
        copied = 0
        for old_key, new_key in key_map.items():
            try:
                with self._lock:
                    text = self._read(old_key)
                    if text is None:
                        continue
                    self._write(new_key, text)
            except Exception as e:
                logger.error("Failed to migrate key '%s': %s", old_key, e)
                continue
            copied += 1

        if copied:
            logger.info("Migrated %d legacy keys", copied)
        return copied

    def load_with_fallback(self, key: str, legacy_key: str) -> Any | None:
        """Load a key, falling back to (and migrating) a legacy key.

        Args:
            key: Current storage key.
            legacy_key: Key used by older versions.

        Returns:
            The value under ``key``, else the legacy value, else None.
        """
        value = self.load(key)
        if value is not None:
            return value

        legacy = self.load(legacy_key)
        if legacy is not None:
            self.save(key, legacy)
            logger.info("Migrated legacy key '%s' to '%s'", legacy_key, key)
        return legacy

    def _serialize(self, value: Any) -> str:
        indent = 2 if self._config.pretty_print else None
        return json.dumps(value, indent=indent, ensure_ascii=False, allow_nan=False)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.exists(key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(namespace={self._config.namespace!r})"
