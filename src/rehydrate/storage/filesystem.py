"""Filesystem-based blob store backend.

Persists each key as a JSON file on the local filesystem. It requires no
external dependencies and is the default backend.
"""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from rehydrate.storage.base import BlobStore, BlobStoreConfig

# Characters kept verbatim in file names; everything else is percent-encoded
_SAFE_CHARS = "-_.@"
_FILENAME_RE = re.compile(r"^[A-Za-z0-9%\-_.@]+$")


@dataclass
class FileSystemConfig(BlobStoreConfig):
    """Configuration for filesystem store.

    Attributes:
        base_path: Base directory for storing files.
        file_extension: File extension to use.
        create_dirs: Whether to create directories if they don't exist.
    """

    base_path: str = ".rehydrate/storage"
    file_extension: str = ".json"
    create_dirs: bool = True

    def get_full_path(self) -> Path:
        """Get the full storage path including namespace."""
        path = Path(self.base_path)
        if self.namespace:
            path = path / self.namespace
        return path


class FileSystemBlobStore(BlobStore):
    """Filesystem-based blob store.

    Keys are percent-encoded into file names, so ``app:auth:data`` is stored
    as ``app%3Aauth%3Adata.json``. Writes go through a temporary file and an
    atomic rename.

    Example:
        >>> store = FileSystemBlobStore(base_path=".rehydrate/storage")
        >>> store.save("store-ui", {"state": {"theme_mode": "dark"}, "version": 1})
        True
    """

    def __init__(
        self,
        base_path: str | Path = ".rehydrate/storage",
        namespace: str = "default",
        pretty_print: bool = True,
        **kwargs: Any,
    ) -> None:
        """Initialize the filesystem store.

        Args:
            base_path: Base directory for storing files.
            namespace: Namespace for organizing data.
            pretty_print: Whether to indent the JSON files.
            **kwargs: Additional configuration options.
        """
        config = FileSystemConfig(
            base_path=str(base_path),
            namespace=namespace,
            pretty_print=pretty_print,
            **{k: v for k, v in kwargs.items() if hasattr(FileSystemConfig, k)},
        )
        super().__init__(config)
        self._fs_config = config
        self._root = config.get_full_path()

        if config.create_dirs:
            self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Get the file path for a key."""
        return self._root / f"{quote(key, safe=_SAFE_CHARS)}{self._fs_config.file_extension}"

    def _read(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, text: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def _remove(self, key: str) -> bool:
        path = self.path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def _keys(self) -> list[str]:
        if not self._root.exists():
            return []

        ext = self._fs_config.file_extension
        keys = []
        for path in self._root.iterdir():
            name = path.name
            if not path.is_file() or not name.endswith(ext):
                continue
            stem = name[: -len(ext)]
            if _FILENAME_RE.match(stem):
                keys.append(unquote(stem))
        return keys
