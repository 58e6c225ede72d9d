import functools
import threading
from collections.abc import Callable

import lmdb

from indexkv.core.errors import BackendError, BackendUnavailable
from indexkv.core.ports.storage import BatchItem


def translate_errors(method: Callable) -> Callable:
    @functools.wraps(method)
    def wrapper(self: "LMDBBackend", *args, **kwargs):
        if self.closed:
            raise BackendUnavailable(f"LMDB environment {self.path} is closed")
        try:
            return method(self, *args, **kwargs)
        except lmdb.Error as ex:
            raise BackendError(f"LMDB {method.__name__} failed: {ex}") from ex

    return wrapper


class LMDBBackend:
    """
    Synchronous access to one LMDB environment. Each store lives in its
    own named database (DBI) inside the environment.

    Every call runs in its own short transaction, except scans, which
    page through a read transaction obtained from begin_snapshot() so
    that all pages observe the same version of the store.
    """
    def __init__(
        self,
        path: str,
        map_size: int = 1 << 30,
        max_dbs: int = 8,
        readahead: bool = True,
        writemap: bool = False,
        sync: bool = True,
        lock: bool = True,
    ) -> None:
        self.path = path
        try:
            self._env = lmdb.open(
                path,
                map_size=map_size,
                max_dbs=max_dbs,
                lock=lock,
                writemap=writemap,
                sync=sync,
                readahead=readahead,
            )
        except lmdb.Error as ex:
            raise BackendUnavailable(f"Cannot open LMDB environment {path}: {ex}") from ex
        self._dbis: dict[bytes, object] = {}
        self._dbis_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @translate_errors
    def get(self, db_name: bytes, key: bytes) -> bytes | None:
        dbi = self._get_dbi(db_name)
        with self._env.begin(db=dbi, write=False) as txn:
            return txn.get(key)

    @translate_errors
    def put(self, db_name: bytes, key: bytes, value: bytes) -> bool:
        dbi = self._get_dbi(db_name)
        with self._env.begin(db=dbi, write=True) as txn:
            return txn.put(key, value)

    @translate_errors
    def delete(self, db_name: bytes, key: bytes) -> bool:
        dbi = self._get_dbi(db_name)
        with self._env.begin(db=dbi, write=True) as txn:
            return txn.delete(key)

    @translate_errors
    def apply_batch(self, db_name: bytes, items: list[BatchItem]) -> None:
        dbi = self._get_dbi(db_name)
        # an exception inside the block aborts the whole transaction
        with self._env.begin(db=dbi, write=True) as txn:
            for key, value in items:
                if value is None:
                    txn.delete(key)
                else:
                    txn.put(key, value)

    @translate_errors
    def clear(self, db_name: bytes) -> None:
        dbi = self._get_dbi(db_name)
        with self._env.begin(write=True) as txn:
            txn.drop(dbi, delete=False)

    @translate_errors
    def drop(self, db_name: bytes) -> None:
        """
        Remove every record of the store. The DBI handle itself is kept:
        read transactions of running scans may still reference it, and
        LMDB forbids closing a handle other transactions use.
        """
        dbi = self._get_dbi(db_name)
        with self._env.begin(write=True) as txn:
            txn.drop(dbi, delete=False)

    @translate_errors
    def count(self, db_name: bytes) -> int:
        dbi = self._get_dbi(db_name)
        with self._env.begin(db=dbi, write=False) as txn:
            return txn.stat(dbi)["entries"]

    @translate_errors
    def begin_snapshot(self, db_name: bytes) -> lmdb.Transaction:
        """
        Open a read transaction for scan(). The caller owns it and must
        abort it once the scan is over.
        """
        dbi = self._get_dbi(db_name)
        return self._env.begin(db=dbi, write=False)

    @translate_errors
    def scan(
        self,
        txn: lmdb.Transaction,
        db_name: bytes,
        start: bytes | None = None,
        end: bytes | None = None,
        limit: int | None = None,
    ) -> list[tuple[bytes, bytes]]:
        """
        Return up to `limit` records with start <= key <= end, in
        ascending lexicographic order, as seen by `txn`.

        A missing `start` begins at the first key of the database, a
        missing `end` runs to the last one. Pagination is done by the
        caller: pass the successor of the last returned key as the next
        `start`.
        """
        if limit is not None and limit <= 0:
            return []

        dbi = self._get_dbi(db_name)
        items: list[tuple[bytes, bytes]] = []

        with txn.cursor(db=dbi) as cursor:
            if start is None:
                positioned = cursor.first()
            else:
                positioned = cursor.set_range(start)

            while positioned:
                key = cursor.key()
                if end is not None and key > end:
                    break

                items.append((key, cursor.value()))
                if limit is not None and len(items) >= limit:
                    break

                positioned = cursor.next()

        return items

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._dbis.clear()
        self._env.close()

    def _get_dbi(self, name: bytes) -> object:
        with self._dbis_lock:
            dbi = self._dbis.get(name)
            if dbi is None:
                dbi = self._env.open_db(name)
                self._dbis[name] = dbi
            return dbi
