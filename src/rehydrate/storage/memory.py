"""In-memory blob store backend.

Keeps serialized JSON text in a dictionary, so values round-trip through
JSON exactly as they would with a real backend. Data is not persisted
between sessions. Useful for testing and development.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from rehydrate.storage.base import BlobStore, BlobStoreConfig


@dataclass
class MemoryConfig(BlobStoreConfig):
    """Configuration for memory store.

    Attributes:
        max_items: Maximum number of keys to keep (0 for unlimited).
    """

    max_items: int = 0


class MemoryBlobStore(BlobStore):
    """In-memory blob store.

    Example:
        >>> store = MemoryBlobStore()
        >>> store.save("store-auth", {"state": {"user": None}, "version": 1})
        True
        >>> store.load("store-auth")
        {'state': {'user': None}, 'version': 1}
    """

    def __init__(self, max_items: int = 0, **kwargs: Any) -> None:
        """Initialize the memory store.

        Args:
            max_items: Maximum number of keys (0 for unlimited). When full,
                the oldest written key is evicted.
            **kwargs: Additional configuration options.
        """
        config = MemoryConfig(
            max_items=max_items,
            **{k: v for k, v in kwargs.items() if hasattr(MemoryConfig, k)},
        )
        super().__init__(config)
        self._max_items = max_items
        self._data: dict[str, str] = {}

    def _read(self, key: str) -> str | None:
        return self._data.get(key)

    def _write(self, key: str, text: str) -> None:
        if key in self._data:
            # re-insert so eviction order follows the latest write
            del self._data[key]
        elif self._max_items > 0 and len(self._data) >= self._max_items:
            oldest = next(iter(self._data))
            del self._data[oldest]
        self._data[key] = text

    def _remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def _keys(self) -> list[str]:
        return list(self._data)

    def put_raw(self, key: str, text: str) -> None:
        """Store raw text without encoding (simulates corrupted storage)."""
        with self._lock:
            self._write(key, text)
