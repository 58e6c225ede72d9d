import asyncio
import cmd
import logging
import shlex
from typing import Any, Awaitable, TextIO

from indexkv.bootstrap.parser import parse_key, parse_options, parse_value
from indexkv.core.errors import IndexKVError
from indexkv.core.ports.render import Renderer
from indexkv.core.ports.serializer import Serializer
from indexkv.core.ports.storage import StorageFactory
from indexkv.core.storage.store import IndexedStore


class StoreShell(cmd.Cmd):
    intro = "Entering indexctl interactive mode. Type 'exit' or 'quit' to leave."
    prompt = "indexctl> "

    def __init__(
        self,
        factory: StorageFactory,
        serializer: Serializer,
        renderer: Renderer,
        store_name: str,
        batch_size: int = 1024,
        stdout: TextIO | None = None,
    ) -> None:
        super().__init__(stdout=stdout)

        self._factory = factory
        self._serializer = serializer
        self._renderer = renderer
        self._store_name = store_name
        self._batch_size = batch_size
        self._store: IndexedStore | None = None
        self._loop = asyncio.new_event_loop()
        self._logger = logging.getLogger("bootstrap.shell")

    @property
    def store_name(self) -> str:
        return self._store_name

    def close(self) -> None:
        try:
            self._loop.run_until_complete(self._factory.close())
        finally:
            self._loop.close()

    def handle(self, coro: Awaitable[Any]) -> None:
        try:
            result = self._loop.run_until_complete(coro)
        except (IndexKVError, ValueError, TypeError) as ex:
            self._logger.debug(f"Command failed: {ex}", exc_info=ex)
            self.stdout.write(f"error: {ex}\n")
            return

        self.stdout.write(self._renderer.render(result))

    def do_get(self, line: str) -> None:
        argv = self._split(line, 1, "get <key>")
        if argv is not None:
            self.handle(self._get(*argv))

    def do_put(self, line: str) -> None:
        argv = self._split(line, 2, "put <key> <value>")
        if argv is not None:
            self.handle(self._put(*argv))

    def do_del(self, line: str) -> None:
        argv = self._split(line, 1, "del <key>")
        if argv is not None:
            self.handle(self._delete(*argv))

    def do_has(self, line: str) -> None:
        argv = self._split(line, 1, "has <key>")
        if argv is not None:
            self.handle(self._has(*argv))

    def do_count(self, line: str) -> None:
        if self._split(line, 0, "count") is not None:
            self.handle(self._count())

    def do_clear(self, line: str) -> None:
        if self._split(line, 0, "clear") is not None:
            self.handle(self._clear())

    def do_range(self, line: str) -> None:
        argv = self._split(line, None, "range [--start <key>] [--end <key>]")
        if argv is not None:
            self.handle(self._range(argv))

    def do_drop(self, line: str) -> None:
        argv = self._split(line, None, "drop [<db>|<db>:<store>]")
        if argv is None:
            return
        if len(argv) > 1:
            self.stdout.write("Usage: drop [<db>|<db>:<store>]\n")
            return
        self.handle(self._drop(argv[0] if argv else self._store_name))

    def do_exit(self, arg: str) -> bool:
        return True

    def do_quit(self, arg: str) -> bool:
        return True

    def do_EOF(self, arg: str) -> bool:
        self.stdout.write("\n")
        return True

    def emptyline(self) -> bool:
        return False

    async def _open_store(self) -> IndexedStore:
        if self._store is None:
            self._store = await IndexedStore.open(
                self._factory,
                self._store_name,
                self._serializer,
                batch_size=self._batch_size,
            )
        return self._store

    async def _get(self, raw_key: str) -> dict:
        key = parse_key(raw_key)
        store = await self._open_store()
        return {"key": key, "value": await store.get(key)}

    async def _put(self, raw_key: str, raw_value: str) -> dict:
        key = parse_key(raw_key)
        value = parse_value(raw_value)
        store = await self._open_store()
        await store.put(key, value)
        return {"key": key, "status": "ok"}

    async def _delete(self, raw_key: str) -> dict:
        key = parse_key(raw_key)
        store = await self._open_store()
        await store.delete(key)
        return {"key": key, "status": "ok"}

    async def _has(self, raw_key: str) -> dict:
        key = parse_key(raw_key)
        store = await self._open_store()
        return {"key": key, "exists": await store.has(key)}

    async def _count(self) -> dict:
        store = await self._open_store()
        return {"count": await store.count()}

    async def _clear(self) -> dict:
        store = await self._open_store()
        await store.clear()
        return {"status": "cleared"}

    async def _range(self, argv: list[str]) -> list[dict]:
        options = parse_options(argv, ("start", "end"))
        start = parse_key(options["start"]) if "start" in options else None
        end = parse_key(options["end"]) if "end" in options else None
        store = await self._open_store()
        records = await store.create_range(start, end).collect_all()
        return [{"key": key, "value": value} for key, value in records]

    async def _drop(self, name: str) -> dict:
        await IndexedStore.drop(self._factory, name)
        self._store = None
        return {"dropped": name}

    def _split(self, line: str, expected: int | None, usage: str) -> list[str] | None:
        try:
            argv = shlex.split(line)
        except ValueError as ex:
            self.stdout.write(f"error: {ex}\n")
            return None

        if expected is not None and len(argv) != expected:
            self.stdout.write(f"Usage: {usage}\n")
            return None

        return argv
