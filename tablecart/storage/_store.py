"""
Client-side storage — typed key/value protocol.

Storage holds strings under string keys, like a browser's local/session
storage. All methods return Result for explicit error handling.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Callable, Awaitable

from kungfu import Result, Ok, Error


# ═══════════════════════════════════════════════════════════════════════════════
# Storage Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StorageError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Storage Protocol — Result-based
# ═══════════════════════════════════════════════════════════════════════════════


class Storage(Protocol):
    """
    Key/value storage protocol.

    Two roles in tablecart:
        durable  — the cart mirror (one key, JSON line array)
        session  — last submission fingerprint + timestamp (two keys)

    Example — Redis-backed implementation:

        class RedisStorage:
            def __init__(self, client: Redis, prefix: str) -> None:
                self.client = client
                self.prefix = prefix

            async def get(self, key: str) -> Result[str | None, StorageError]:
                try:
                    raw = await self.client.get(self.prefix + key)
                    return Ok(raw.decode() if raw else None)
                except Exception as e:
                    return Error(StorageError("Failed to get", e))

            # ... set / remove
    """

    async def get(self, key: str) -> Result[str | None, StorageError]:
        """Get value. Returns Ok(None) if not found."""
        ...

    async def set(self, key: str, value: str) -> Result[None, StorageError]:
        """Store value, replacing any previous one."""
        ...

    async def remove(self, key: str) -> Result[bool, StorageError]:
        """Remove key. Returns Ok(True) if existed."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Function-based Storage Builder
# ═══════════════════════════════════════════════════════════════════════════════

type GetFn = Callable[[str], Awaitable[Result[str | None, StorageError]]]
type SetFn = Callable[[str, str], Awaitable[Result[None, StorageError]]]
type RemoveFn = Callable[[str], Awaitable[Result[bool, StorageError]]]


@dataclass(frozen=True)
class FunctionalStorage:
    """
    Storage built from functions.

    Example:
        storage = storage_from(
            get=prefs.read,
            set=prefs.write,
            remove=prefs.erase,
        )
    """

    _get: GetFn
    _set: SetFn
    _remove: RemoveFn

    async def get(self, key: str) -> Result[str | None, StorageError]:
        return await self._get(key)

    async def set(self, key: str, value: str) -> Result[None, StorageError]:
        return await self._set(key, value)

    async def remove(self, key: str) -> Result[bool, StorageError]:
        return await self._remove(key)


def storage_from(get: GetFn, set: SetFn, remove: RemoveFn) -> FunctionalStorage:
    """Create Storage from functions."""
    return FunctionalStorage(_get=get, _set=set, _remove=remove)


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Storage — Session Scope / Tests
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryStorage:
    """
    In-memory storage.

    Note: Lives as long as the process, like a tab's session storage.
    Also used as the durable store in tests.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self.writes = 0

    async def get(self, key: str) -> Result[str | None, StorageError]:
        return Ok(self._data.get(key))

    async def set(self, key: str, value: str) -> Result[None, StorageError]:
        self._data[key] = value
        self.writes += 1
        return Ok(None)

    async def remove(self, key: str) -> Result[bool, StorageError]:
        if key in self._data:
            del self._data[key]
            return Ok(True)
        return Ok(False)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


# ═══════════════════════════════════════════════════════════════════════════════
# File Storage — Durable
# ═══════════════════════════════════════════════════════════════════════════════


class FileStorage:
    """
    Durable storage in a single JSON document.

    Writes go to a temp file in the same directory and are moved into
    place, so a crash never leaves a half-written document. File I/O
    runs in a worker thread.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, self._path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _put(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def _drop(self, key: str) -> bool:
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True

    async def get(self, key: str) -> Result[str | None, StorageError]:
        async with self._lock:
            try:
                data = await asyncio.to_thread(self._read)
                return Ok(data.get(key))
            except (OSError, ValueError) as e:
                return Error(StorageError(f"Failed to read {self._path}", e))

    async def set(self, key: str, value: str) -> Result[None, StorageError]:
        async with self._lock:
            try:
                await asyncio.to_thread(self._put, key, value)
                return Ok(None)
            except (OSError, ValueError) as e:
                return Error(StorageError(f"Failed to write {self._path}", e))

    async def remove(self, key: str) -> Result[bool, StorageError]:
        async with self._lock:
            try:
                return Ok(await asyncio.to_thread(self._drop, key))
            except (OSError, ValueError) as e:
                return Error(StorageError(f"Failed to write {self._path}", e))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "StorageError",
    "Storage",
    "FunctionalStorage",
    "storage_from",
    "MemoryStorage",
    "FileStorage",
)
