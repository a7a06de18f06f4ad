"""
Durable key-value store shared by every start of the host process
"""

import asyncio
import copy
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Any, Optional

from core.logging_config import get_logger

logger = get_logger(__name__)


class StateStoreError(Exception):
    """Raised when the store file cannot be read or written"""
    pass


class StateStore(ABC):
    """
    Crash-safe key-value store.

    Reads and writes are per key; there are no transactions across keys.
    Every call is a suspension point: callers must not assume anything in
    memory survives it.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the value stored under ``key``, or None"""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under ``key``"""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key`` if present"""
        pass


class MemoryStateStore(StateStore):
    """In-process store; values are deep-copied so callers never share state with it"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Optional[Any]:
        await asyncio.sleep(0)
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        self._data[key] = copy.deepcopy(value)

    async def remove(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)


class JsonFileStateStore(StateStore):
    """
    Store backed by a single JSON document on disk.

    Each write goes to a temporary file in the same directory, is fsynced and
    then atomically renamed over the previous document, so a crash leaves
    either the old or the new document and never a torn one.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def remove(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if key in data:
                del data[key]
                await asyncio.to_thread(self._write, data)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateStoreError(f"State store {self.path} is not valid JSON: {e}") from e
        except OSError as e:
            raise StateStoreError(f"Cannot read state store {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StateStoreError(f"State store {self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        fd, tmp_path = tempfile.mkstemp(prefix=".storage-", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StateStoreError(f"Cannot write state store {self.path}: {e}") from e

    def get_storage_info(self) -> Dict[str, Any]:
        """Get information about the store file"""
        exists = self.path.exists()
        return {
            "path": str(self.path),
            "exists": exists,
            "size_bytes": self.path.stat().st_size if exists else 0,
        }
