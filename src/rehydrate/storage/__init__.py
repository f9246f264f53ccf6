"""Blob storage for persisted store state.

This package provides the key-value persistence the migration engine is fed
from: load a JSON blob by key, save it back.

Example:
    >>> from rehydrate.storage import get_blob_store, storage_key
    >>>
    >>> store = get_blob_store("filesystem", base_path=".rehydrate/storage")
    >>> key = storage_key("auth")
    >>> store.save(key, {"state": {"user": None}, "version": 2})
    True
    >>> store.load(key)
    {'state': {'user': None}, 'version': 2}
"""

from rehydrate.storage.base import (
    BlobStore,
    BlobStoreConfig,
    StorageError,
)
from rehydrate.storage.memory import MemoryBlobStore
from rehydrate.storage.filesystem import FileSystemBlobStore
from rehydrate.storage.factory import get_blob_store, list_backends, register_blob_store
from rehydrate.storage.keys import AppMode, KeySuffixes, storage_key

__all__ = [
    # Base classes
    "BlobStore",
    "BlobStoreConfig",
    "StorageError",
    # Backends
    "MemoryBlobStore",
    "FileSystemBlobStore",
    # Factory functions
    "get_blob_store",
    "list_backends",
    "register_blob_store",
    # Keys
    "AppMode",
    "KeySuffixes",
    "storage_key",
]
