"""Factory functions for creating blob stores.

This module provides a registry-based factory pattern for creating blob
store instances. New backends can be registered at runtime.
"""

from __future__ import annotations

from typing import Any, Callable

from rehydrate.storage.base import BlobStore, StorageError

# Type for store constructor functions
BlobStoreConstructor = Callable[..., BlobStore]

# Registry of store constructors
_store_registry: dict[str, BlobStoreConstructor] = {}


def register_blob_store(name: str) -> Callable[[BlobStoreConstructor], BlobStoreConstructor]:
    """Decorator to register a blob store backend.

    Args:
        name: Name to register the backend under.

    Returns:
        Decorator function.

    Example:
        >>> @register_blob_store("sqlite")
        ... class SqliteBlobStore(BlobStore):
        ...     pass
    """

    def decorator(cls: BlobStoreConstructor) -> BlobStoreConstructor:
        _store_registry[name.lower().strip()] = cls
        return cls

    return decorator


def get_blob_store(backend: str = "filesystem", **kwargs: Any) -> BlobStore:
    """Create a blob store for the specified backend.

    Args:
        backend: Name of the backend. Built-in options:
            - "filesystem": JSON files on the local filesystem (default)
            - "memory": In-memory storage (for testing)
        **kwargs: Backend-specific configuration options.

    Returns:
        Configured store instance.

    Raises:
        StorageError: If the backend is unknown or cannot be created.

    Example:
        >>> store = get_blob_store("filesystem", base_path=".rehydrate/storage")
        >>> store = get_blob_store("memory")
    """
    backend = backend.lower().strip()

    if backend in _store_registry:
        constructor = _store_registry[backend]
    elif backend == "filesystem":
        from rehydrate.storage.filesystem import FileSystemBlobStore

        constructor = FileSystemBlobStore
    elif backend == "memory":
        from rehydrate.storage.memory import MemoryBlobStore

        constructor = MemoryBlobStore
    else:
        available = sorted({"filesystem", "memory", *_store_registry})
        raise StorageError(
            f"Unknown blob store backend: {backend}. "
            f"Available backends: {', '.join(available)}"
        )

    try:
        return constructor(**kwargs)
    except TypeError as e:
        raise StorageError(f"Invalid options for backend '{backend}': {e}") from e


def list_backends() -> list[str]:
    """List available backend names."""
    return sorted({"filesystem", "memory", *_store_registry})
