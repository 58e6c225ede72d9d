import asyncio
import bisect
import logging
from typing import AsyncIterator

from indexkv.core.errors import BackendUnavailable
from indexkv.core.helpers.utils import split_store_name
from indexkv.core.ports.storage import BatchItem, Storage


class MemoryStorage:
    """
    Process-local sorted store. Keys are kept in a sorted list next to a
    dict of values, which gives ordered scans without a native cursor.

    Nothing here awaits while mutating, so each call is atomic with
    respect to other coroutines on the same event loop.
    """
    def __init__(self) -> None:
        self._keys: list[bytes] = []
        self._data: dict[bytes, bytes] = {}
        self._closed = False

    async def get(self, key: bytes) -> bytes | None:
        self._ensure_open()
        return self._data.get(key)

    async def put(self, key: bytes, value: bytes) -> None:
        self._ensure_open()
        self._put(self._keys, self._data, key, value)

    async def delete(self, key: bytes) -> None:
        self._ensure_open()
        self._delete(self._keys, self._data, key)

    async def clear(self) -> None:
        self._ensure_open()
        self._keys = []
        self._data = {}

    async def count(self) -> int:
        self._ensure_open()
        return len(self._keys)

    async def apply_batch(self, items: list[BatchItem]) -> None:
        self._ensure_open()
        keys = list(self._keys)
        data = dict(self._data)
        for key, value in items:
            if value is None:
                self._delete(keys, data, key)
            else:
                self._put(keys, data, key, value)

        self._keys, self._data = keys, data

    async def iter(
        self,
        start: bytes | None = None,
        end: bytes | None = None,
        batch_size: int = 1024,
    ) -> AsyncIterator[tuple[bytes, bytes]]:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self._ensure_open()
        lo = 0 if start is None else bisect.bisect_left(self._keys, start)
        hi = len(self._keys) if end is None else bisect.bisect_right(self._keys, end)
        snapshot = [(key, self._data[key]) for key in self._keys[lo:hi]]

        for offset in range(0, len(snapshot), batch_size):
            # a scan stops at the next page once the store is closed or dropped
            self._ensure_open()
            for item in snapshot[offset:offset + batch_size]:
                yield item
            # let other tasks run between pages
            await asyncio.sleep(0)

    async def close(self) -> None:
        self._closed = True

    @staticmethod
    def _put(keys: list[bytes], data: dict[bytes, bytes], key: bytes, value: bytes) -> None:
        if key not in data:
            bisect.insort(keys, key)
        data[key] = value

    @staticmethod
    def _delete(keys: list[bytes], data: dict[bytes, bytes], key: bytes) -> None:
        if key in data:
            del data[key]
            del keys[bisect.bisect_left(keys, key)]

    def _ensure_open(self) -> None:
        if self._closed:
            raise BackendUnavailable("Memory store is closed")


class MemoryStorageFactory:
    """
    Keeps every opened store in memory for the lifetime of the factory.
    Opening the same name twice returns the same handle.
    """
    def __init__(self) -> None:
        self._databases: dict[str, dict[str, MemoryStorage]] = {}
        self._lock = asyncio.Lock()
        self._closed = False
        self._logger = logging.getLogger("infra.memory_storage")

    async def open(self, name: str) -> Storage:
        db, store = split_store_name(name)
        async with self._lock:
            if self._closed:
                raise BackendUnavailable("Memory storage factory is closed")

            stores = self._databases.setdefault(db, {})
            if store not in stores:
                stores[store] = MemoryStorage()
                self._logger.info(f"Opened memory store '{store}' of database '{db}'")
            return stores[store]

    async def drop(self, name: str) -> None:
        db, store = split_store_name(name)
        async with self._lock:
            if ":" in name:
                dropped = [self._databases.get(db, {}).pop(store, None)]
            else:
                dropped = list(self._databases.pop(db, {}).values())

            for storage in dropped:
                if storage is not None:
                    await storage.close()
        self._logger.info(f"Dropped '{name}'")

    async def close(self) -> None:
        async with self._lock:
            self._closed = True
            for stores in self._databases.values():
                for storage in stores.values():
                    await storage.close()
            self._databases.clear()
