import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Self

from indexkv.core.ports.serializer import Serializer
from indexkv.core.ports.storage import Storage, StorageFactory
from indexkv.core.storage.batch import BatchBuilder, BatchOperation, serialize_value
from indexkv.core.storage.codec import Key, KeyCodec
from indexkv.core.storage.range import RangeIterator


class IndexedStore:
    """
    Key-value store over heterogeneous application keys.

    Keys (numbers, texts, dates, tuples) go through KeyCodec, so records
    are kept in a single total order: numbers < texts < dates < arrays.
    Values go through the given Serializer. The underlying Storage only
    ever sees byte strings.

    Every operation is a coroutine. Keys and values are encoded, and
    batches validated, before the backend is called, so malformed input
    never causes a partial write. Backend errors propagate unchanged.

    The store holds no lock and no cache: operations issued one after
    the other by the same caller reach the backend in that order, and a
    handle can be shared by concurrent callers.
    """
    def __init__(
        self,
        storage: Storage,
        serializer: Serializer,
        batch_size: int = 1024,
    ) -> None:
        self._storage = storage
        self._serializer = serializer
        self._batch_size = batch_size
        self._batch_builder = BatchBuilder(serializer)
        self._logger = logging.getLogger("core.storage.store")

    @classmethod
    async def open(
        cls,
        factory: StorageFactory,
        name: str,
        serializer: Serializer,
        batch_size: int = 1024,
    ) -> Self:
        """
        Open the store `name` ("<db>:<store>" or "<db>") through `factory`.
        """
        storage = await factory.open(name)
        return cls(storage, serializer, batch_size=batch_size)

    @staticmethod
    async def drop(factory: StorageFactory, name: str) -> None:
        """
        Destroy a whole database ("<db>") or a single store
        ("<db>:<store>"). Irreversible.
        """
        if not isinstance(name, str) or not name:
            raise TypeError("db `name` required")
        await factory.drop(name)

    async def get(self, key: Key) -> Any | None:
        """
        Return the value stored under `key`, or None when the key is absent.
        """
        raw = await self._storage.get(KeyCodec.encode(key))
        if raw is None:
            return None
        return self._serializer.deserialize(raw)

    async def put(self, key: Key, value: Any) -> None:
        raw_key = KeyCodec.encode(key)
        raw_value = serialize_value(self._serializer, key, value)
        await self._storage.put(raw_key, raw_value)

    async def delete(self, key: Key) -> None:
        await self._storage.delete(KeyCodec.encode(key))

    async def has(self, key: Key) -> bool:
        # same lookup as get(), minus the value decoding
        return await self._storage.get(KeyCodec.encode(key)) is not None

    async def count(self) -> int:
        return await self._storage.count()

    async def clear(self) -> None:
        await self._storage.clear()

    async def batch(self, operations: Sequence[BatchOperation | Mapping]) -> None:
        """
        Apply puts and deletes in one atomic unit.

        Every operation is validated and encoded first; the first invalid
        one raises InvalidBatchOperation (or UnsupportedKeyType) carrying
        its index, and nothing is written. The encoded batch is then
        handed to the backend, which applies all of it or none of it.
        """
        items = self._batch_builder.build(operations)
        if not items:
            return

        self._logger.debug(f"Submitting batch of {len(items)} operations")
        await self._storage.apply_batch(items)

    def create_range(
        self,
        start: Key | None = None,
        end: Key | None = None,
    ) -> RangeIterator:
        """
        Iterate records with start <= key <= end in ascending key order.
        Either bound may be omitted.
        """
        return RangeIterator(
            self._storage,
            self._serializer,
            start=start,
            end=end,
            batch_size=self._batch_size,
        )

    async def all(self) -> list[tuple[Any, Any]]:
        return await self.create_range().collect_all()

    async def for_each(
        self,
        fn: Callable[[Any, Any], Awaitable[Any] | Any],
        start: Key | None = None,
        end: Key | None = None,
    ) -> None:
        if not callable(fn):
            raise TypeError("iterator function required")
        await self.create_range(start, end).for_each(fn)

    async def close(self) -> None:
        await self._storage.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
