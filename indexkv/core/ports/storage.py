from typing import Protocol, AsyncIterator


BatchItem = tuple[bytes, bytes | None]
"""
One raw batch entry: (key, value). A None value deletes the key.
"""


class Storage(Protocol):
    """
    Asynchronous handle on one named, sorted key-value store.

    Keys are compared as raw byte strings in lexicographic order. Values
    are opaque bytes. The handle is obtained from a StorageFactory and
    stays valid until close() is called on it or on its factory.

    Implementations translate their native failures into BackendError,
    and raise BackendUnavailable once the handle can no longer be used.
    """

    async def get(self, key: bytes) -> bytes | None:
        """
        Retrieve the value stored under `key`. Returns None if the key
        does not exist; a missing key is never an error.
        """

    async def put(self, key: bytes, value: bytes) -> None:
        """
        Store `value` under `key`, replacing any previous value.

        The write must be visible to subsequent calls to `get` issued
        by the same caller.
        """

    async def delete(self, key: bytes) -> None:
        """
        Remove `key`. Removing an absent key succeeds silently.
        """

    async def clear(self) -> None:
        """
        Remove every record of the store. The store itself stays open.
        """

    async def count(self) -> int:
        """
        Return the number of records, read from a single consistent
        snapshot of the store.
        """

    async def apply_batch(self, items: list[BatchItem]) -> None:
        """
        Apply an ordered list of puts and deletes as one atomic unit:
        either every entry is applied or none is. Entries are applied in
        list order, so a later entry on the same key wins.
        """

    def iter(
        self,
        start: bytes | None = None,
        end: bytes | None = None,
        batch_size: int = 1024,
    ) -> AsyncIterator[tuple[bytes, bytes]]:
        """
        Stream (key, value) pairs in ascending byte order.

        Both bounds are inclusive; a missing bound leaves that side of
        the range open. The scan reflects the contents of the store when
        iteration starts: records written afterwards are not observed.
        Records are fetched from the backend `batch_size` at a time.
        """

    async def close(self) -> None:
        """
        Release the resources held by this handle. The handle must not be
        used afterwards.
        """


class StorageFactory(Protocol):
    """
    Opens and drops named stores.

    A store name is either "<db>:<store>" or "<db>". A database groups
    several stores sharing the same physical resources (an LMDB
    environment, for instance); a bare "<db>" opens its default store.
    """

    async def open(self, name: str) -> Storage:
        """
        Return a handle on the named store, creating it when missing.

        Callers must not assume whether handles are cached or created on
        demand. Raises BackendUnavailable if the store cannot be opened.
        """

    async def drop(self, name: str) -> None:
        """
        Destroy a store ("<db>:<store>") or a whole database ("<db>")
        and every record it holds. Handles opened on a dropped store must
        not be used afterwards. Dropping something that does not exist
        succeeds.
        """

    async def close(self) -> None:
        """
        Release every resource held by the factory and its handles.
        """
