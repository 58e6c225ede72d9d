import json
from functools import lru_cache

from pydantic import ValidationError

from indexkv.bootstrap.config.loader import get_cli_args
from indexkv.bootstrap.config.settings import IndexKVConfig, StorageSettings
from indexkv.bootstrap.shell import StoreShell
from indexkv.core.ports.serializer import Serializer
from indexkv.core.ports.storage import StorageFactory
from indexkv.infra.format_renderer import YamlRenderer
from indexkv.infra.lmdb_storage.aiobackend import LMDBStorageFactory
from indexkv.infra.memory_storage import MemoryStorageFactory
from indexkv.infra.msgpack_serializer import MsgPackSerializer


def build_storage_factory(settings: StorageSettings) -> StorageFactory:
    if settings.backend == "memory":
        return MemoryStorageFactory()

    return LMDBStorageFactory(
        path=settings.data_dir,
        map_size=settings.map_size,
        max_dbs=settings.max_dbs,
        readahead=settings.readahead,
        writemap=settings.writemap,
        sync=settings.sync,
        max_readers=settings.max_readers,
        max_writers=settings.max_writers,
    )


@lru_cache
def get_serializer() -> Serializer:
    return MsgPackSerializer()


@lru_cache
def get_storage_factory() -> StorageFactory:
    config = get_config()
    return build_storage_factory(config.storage)


@lru_cache
def get_shell() -> StoreShell:
    config = get_config()
    cli = get_cli_args()
    return StoreShell(
        factory=get_storage_factory(),
        serializer=get_serializer(),
        renderer=YamlRenderer(),
        store_name=cli.store or config.store,
        batch_size=config.storage.batch_size,
    )


@lru_cache
def get_config() -> IndexKVConfig:
    try:
        return IndexKVConfig()
    except FileNotFoundError as ex:
        raise SystemExit(f"Provide a correct configuration file path: {ex}")
    except ValidationError as ex:
        msg = ["Configuration validation failed:"]
        errs = json.loads(ex.json())
        for err in errs:
            msg.append(f"  {'.'.join(map(str, err['loc']))}: {err['msg']}")
        raise SystemExit("\n".join(msg))
