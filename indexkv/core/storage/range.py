import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, AsyncIterator, Self

from indexkv.core.ports.serializer import Serializer
from indexkv.core.ports.storage import Storage
from indexkv.core.storage.codec import Key, KeyCodec


class RangeIterator:
    """
    Lazy, one-pass, ascending view over the records whose keys fall
    between `start` and `end`, both inclusive. A missing bound leaves that
    side of the range open.

    Bounds are encoded when the iterator is built, so an unsupported
    bound fails immediately. Nothing is read from the backend until the
    first element is pulled. Each raw record is decoded only when it is
    yielded; a stored key that does not decode terminates the iteration
    with CorruptEncoding instead of producing garbage.

    Any error, including one raised by a for_each callback, closes the
    iterator: elements already yielded remain valid, but no further
    element is ever produced. The same holds once the range is
    exhausted. Build a new iterator to read the range again.
    """
    def __init__(
        self,
        storage: Storage,
        serializer: Serializer,
        start: Key | None = None,
        end: Key | None = None,
        batch_size: int = 1024,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self._storage = storage
        self._serializer = serializer
        self._start = None if start is None else KeyCodec.encode(start)
        self._end = None if end is None else KeyCodec.encode(end)
        self._batch_size = batch_size
        self._source: AsyncIterator[tuple[bytes, bytes]] | None = None
        self._closed = False
        self._logger = logging.getLogger("core.storage.range")

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> tuple[Any, Any]:
        if self._closed:
            raise StopAsyncIteration

        if self._source is None:
            self._source = self._open()
            if self._source is None:
                self._closed = True
                raise StopAsyncIteration

        try:
            raw_key, raw_value = await anext(self._source)
            return KeyCodec.decode(raw_key), self._serializer.deserialize(raw_value)
        except BaseException:
            await self.aclose()
            raise

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self._closed = True
        source, self._source = self._source, None
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()

    async def collect_all(self) -> list[tuple[Any, Any]]:
        """
        Drain the range into a list of (key, value) pairs. On error the
        partial result is discarded and the error propagates.
        """
        return [item async for item in self]

    async def for_each(
        self,
        fn: Callable[[Any, Any], Awaitable[Any] | Any]
    ) -> None:
        """
        Call `fn(key, value)` for every element. Coroutine functions are
        awaited. The first exception raised by `fn` closes the iterator
        and propagates.
        """
        if not callable(fn):
            raise TypeError("iterator function required")

        async for key, value in self:
            try:
                result = fn(key, value)
                if inspect.isawaitable(result):
                    await result
            except BaseException:
                await self.aclose()
                raise

    def _open(self) -> AsyncIterator[tuple[bytes, bytes]] | None:
        if (
            self._start is not None
            and self._end is not None
            and self._start > self._end
        ):
            return None

        self._logger.debug(
            f"Opening range start={self._start!r} end={self._end!r}"
        )
        return self._storage.iter(
            start=self._start,
            end=self._end,
            batch_size=self._batch_size,
        )
