from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the storage backend cannot complete an operation."""


class KeyNotFoundError(StorageError):
    def __init__(self, key: str):
        super().__init__(f"Key '{key}' not found")
        self.key = key


def normalize_key(key: str) -> str:
    """
    Validate a '/'-separated storage key and strip surrounding slashes.

    Keys never contain empty, '.' or '..' segments.
    """
    parts = key.strip("/").split("/")
    if any(part in ("", ".", "..") for part in parts):
        raise StorageError(f"Invalid storage key '{key}'")
    return "/".join(parts)


class Storage(ABC):
    """
    Abstract asynchronous key/value storage.

    Keys are '/'-separated strings, values are raw bytes.
    """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether a value is stored under `key`."""
        pass

    @abstractmethod
    async def value(self, key: str) -> bytes:
        """Read the value stored under `key`. Raises KeyNotFoundError."""
        pass

    @abstractmethod
    async def save(self, key: str, content: bytes) -> None:
        """Create or overwrite the value under `key`."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the value under `key`. Raises KeyNotFoundError."""
        pass

    @abstractmethod
    async def list(self, prefix: str = "") -> List[str]:
        """List all keys below `prefix`, sorted."""
        pass


class InMemoryStorage(Storage):
    """Dictionary-backed storage, used by tests and ephemeral deployments."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    async def exists(self, key: str) -> bool:
        return normalize_key(key) in self._data

    async def value(self, key: str) -> bytes:
        key = normalize_key(key)
        if key not in self._data:
            raise KeyNotFoundError(key)
        return self._data[key]

    async def save(self, key: str, content: bytes) -> None:
        async with self._lock:
            self._data[normalize_key(key)] = bytes(content)

    async def delete(self, key: str) -> None:
        key = normalize_key(key)
        async with self._lock:
            if key not in self._data:
                raise KeyNotFoundError(key)
            del self._data[key]

    async def list(self, prefix: str = "") -> List[str]:
        root = prefix.strip("/")
        if not root:
            return sorted(self._data)
        return sorted(k for k in self._data if k == root or k.startswith(root + "/"))


class FileSystemStorage(Storage):
    """
    Storage backed by a directory on disk.

    Each key maps to a file below the root directory.
    """

    def __init__(self, root: Path):
        self._root = root
        if not self._root.exists():
            self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._root / normalize_key(key)

    async def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    async def value(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise KeyNotFoundError(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as exc:
            raise StorageError(f"Failed to read '{key}': {exc}") from exc

    async def save(self, key: str, content: bytes) -> None:
        path = self._path(key)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, path)
        except OSError as exc:
            raise StorageError(f"Failed to write '{key}': {exc}") from exc
        logger.debug(f"Saved {len(content)} bytes to {path}")

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if not path.is_file():
            raise KeyNotFoundError(key)
        try:
            await aiofiles.os.remove(path)
        except OSError as exc:
            raise StorageError(f"Failed to delete '{key}': {exc}") from exc

    async def list(self, prefix: str = "") -> List[str]:
        base = self._root / normalize_key(prefix) if prefix.strip("/") else self._root
        if base.is_file():
            return [str(base.relative_to(self._root).as_posix())]
        if not base.is_dir():
            return []
        return sorted(
            path.relative_to(self._root).as_posix()
            for path in base.rglob("*")
            if path.is_file() and not path.name.endswith(".tmp")
        )
