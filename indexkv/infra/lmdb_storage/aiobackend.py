import asyncio
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import AsyncIterator

from indexkv.core.errors import BackendUnavailable
from indexkv.core.helpers.utils import split_store_name, successor
from indexkv.core.ports.storage import BatchItem, Storage
from indexkv.infra.lmdb_storage.backend import LMDBBackend


class LMDBDatabase:
    """
    One LMDB environment shared by every store of a database, together
    with the thread pools its blocking calls run on.

    Writes go through a single-worker pool by default, which keeps them
    in submission order and matches LMDB's single-writer model.
    """
    def __init__(
        self,
        path: str,
        map_size: int = 1 << 30,
        max_dbs: int = 256,
        readahead: bool = True,
        writemap: bool = False,
        sync: bool = True,
        lock: bool = True,
        max_readers: int = 4,
        max_writers: int = 1,
    ) -> None:
        self.backend = LMDBBackend(
            path=path,
            map_size=map_size,
            max_dbs=max_dbs,
            readahead=readahead,
            writemap=writemap,
            sync=sync,
            lock=lock,
        )
        self.read_pool = ThreadPoolExecutor(max_workers=max_readers)
        self.write_pool = ThreadPoolExecutor(max_workers=max_writers)
        # bumped on every drop; handles opened before it are stale
        self._generations: dict[bytes, int] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def generation(self, store: bytes) -> int:
        return self._generations.get(store, 0)

    def storage(self, store: str) -> "LMDBStorage":
        name = store.encode("utf-8")
        return LMDBStorage(self, name, self.generation(name))

    async def drop_store(self, store: bytes) -> None:
        """
        Drop one store. Every handle opened on it so far becomes unusable,
        including scans in progress; handles opened afterwards see a new,
        empty store.
        """
        self._generations[store] = self.generation(store) + 1
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self.write_pool, self.backend.drop, store)

    async def close(self) -> None:
        self._closed = True

        def shutdown() -> None:
            self.read_pool.shutdown(wait=True)
            self.write_pool.shutdown(wait=True)
            self.backend.close()

        await asyncio.to_thread(shutdown)


class LMDBStorage:
    """
    Storage handle on one named store of an LMDB database. Blocking LMDB
    calls are offloaded to the database's thread pools so the event loop
    is never blocked.
    """
    def __init__(self, database: LMDBDatabase, store: bytes, generation: int = 0) -> None:
        self._database = database
        self._backend = database.backend
        self._store = store
        self._generation = generation
        self._closed = False

    async def get(self, key: bytes) -> bytes | None:
        return await self._read(self._backend.get, self._store, key)

    async def put(self, key: bytes, value: bytes) -> None:
        await self._write(self._backend.put, self._store, key, value)

    async def delete(self, key: bytes) -> None:
        await self._write(self._backend.delete, self._store, key)

    async def clear(self) -> None:
        await self._write(self._backend.clear, self._store)

    async def count(self) -> int:
        return await self._read(self._backend.count, self._store)

    async def apply_batch(self, items: list[BatchItem]) -> None:
        await self._write(self._backend.apply_batch, self._store, items)

    async def iter(
        self,
        start: bytes | None = None,
        end: bytes | None = None,
        batch_size: int = 1024,
    ) -> AsyncIterator[tuple[bytes, bytes]]:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        txn = await self._read(self._backend.begin_snapshot, self._store)
        try:
            next_key = start
            while True:
                batch = await self._read(
                    self._backend.scan,
                    txn,
                    self._store,
                    next_key,
                    end,
                    batch_size,
                )

                for key, value in batch:
                    yield key, value

                if len(batch) < batch_size:
                    break

                next_key = successor(batch[-1][0])
        finally:
            if not (self._database.closed or self._backend.closed):
                txn.abort()

    async def close(self) -> None:
        # the environment belongs to the database, closed by the factory
        self._closed = True

    async def _read(self, func, *args):
        self._ensure_open()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._database.read_pool, func, *args)

    async def _write(self, func, *args):
        self._ensure_open()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._database.write_pool, func, *args)

    def _ensure_open(self) -> None:
        if self._closed or self._database.closed or self._backend.closed:
            raise BackendUnavailable(
                f"Store '{self._store.decode('utf-8')}' is closed"
            )
        if self._database.generation(self._store) != self._generation:
            raise BackendUnavailable(
                f"Store '{self._store.decode('utf-8')}' was dropped"
            )


class LMDBStorageFactory:
    """
    Opens stores named "<db>:<store>" as LMDB databases (DBIs) inside an
    environment rooted at `<path>/<db>`. Environments are opened lazily,
    once per database, and shared by all handles of that database.
    """
    def __init__(
        self,
        path: Path,
        map_size: int = 1 << 30,
        max_dbs: int = 256,
        readahead: bool = True,
        writemap: bool = False,
        sync: bool = True,
        lock: bool = True,
        max_readers: int = 4,
        max_writers: int = 1,
    ) -> None:
        self._path = Path(path)
        self._map_size = map_size
        self._max_dbs = max_dbs
        self._readahead = readahead
        self._writemap = writemap
        self._sync = sync
        self._lock = lock
        self._max_readers = max_readers
        self._max_writers = max_writers

        self._databases: dict[str, LMDBDatabase] = {}
        self._databases_lock = asyncio.Lock()
        self._closed = False
        self._logger = logging.getLogger("infra.lmdb_storage")

    async def open(self, name: str) -> Storage:
        db, store = split_store_name(name)
        database = await self._get_database(db)
        return database.storage(store)

    async def drop(self, name: str) -> None:
        db, store = split_store_name(name)
        if ":" in name:
            database = await self._get_database(db)
            await database.drop_store(store.encode("utf-8"))
            self._logger.info(f"Dropped store '{store}' of database '{db}'")
            return

        async with self._databases_lock:
            database = self._databases.pop(db, None)
            if database is not None:
                await database.close()
            await asyncio.to_thread(
                shutil.rmtree, self._path / db, ignore_errors=True
            )
        self._logger.info(f"Dropped database '{db}'")

    async def close(self) -> None:
        async with self._databases_lock:
            self._closed = True
            coros = [db.close() for db in self._databases.values()]
            await asyncio.gather(*coros, return_exceptions=True)
            self._databases.clear()

    async def _get_database(self, db: str) -> LMDBDatabase:
        async with self._databases_lock:
            if self._closed:
                raise BackendUnavailable("LMDB storage factory is closed")

            if db not in self._databases:
                path = self._path / db
                path.mkdir(parents=True, exist_ok=True)
                self._databases[db] = LMDBDatabase(
                    path=str(path),
                    map_size=self._map_size,
                    max_dbs=self._max_dbs,
                    readahead=self._readahead,
                    writemap=self._writemap,
                    sync=self._sync,
                    lock=self._lock,
                    max_readers=self._max_readers,
                    max_writers=self._max_writers,
                )
                self._logger.info(f"Opened LMDB environment {path}")

            return self._databases[db]
