from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource, YamlConfigSettingsSource

from indexkv.bootstrap.config.loader import get_configfile
from indexkv.core.helpers.utils import split_store_name


class StorageSettings(BaseModel):
    backend: Annotated[
        Literal["lmdb", "memory"],
        Field(
            description=(
                "Storage backend.\n"
                "'lmdb' persists stores under data_dir, one LMDB environment per\n"
                "database and one named LMDB database per store.\n"
                "'memory' keeps everything in the process and loses it on exit."
            ),
            default="lmdb"
        )
    ]

    data_dir: Annotated[
        Path,
        Field(
            description=(
                "Directory holding the LMDB environments.\n"
                "It must exist or be creatable, writable, and persistent across restarts."
            ),
            default=Path("indexkv-data")
        )
    ]

    map_size: Annotated[
        int,
        Field(
            description="Maximum size in bytes an LMDB environment may grow to.",
            default=1 << 30,
            gt=0
        )
    ]

    max_dbs: Annotated[
        int,
        Field(
            description="Maximum number of stores inside one database.",
            default=256,
            gt=0
        )
    ]

    sync: Annotated[
        bool,
        Field(
            description="Flush to disk on every commit.",
            default=True
        )
    ]

    readahead: Annotated[
        bool,
        Field(
            description="Let the OS read ahead in the memory map.",
            default=True
        )
    ]

    writemap: Annotated[
        bool,
        Field(
            description="Use a writeable memory map.",
            default=False
        )
    ]

    max_readers: Annotated[
        int,
        Field(
            description="Worker threads serving reads and scans.",
            default=4,
            gt=0
        )
    ]

    max_writers: Annotated[
        int,
        Field(
            description=(
                "Worker threads serving writes.\n"
                "Keep it at 1 to apply writes in submission order."
            ),
            default=1,
            gt=0
        )
    ]

    batch_size: Annotated[
        int,
        Field(
            description="Number of records fetched per page during range scans.",
            default=1024,
            gt=0
        )
    ]


class IndexKVConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="INDEXKV_",
        env_nested_delimiter="__",
        extra="allow"
    )

    store: Annotated[
        str,
        Field(
            description=(
                "Store opened by default, as '<db>:<store>' or '<db>'.\n"
                "A bare '<db>' refers to the database's 'default' store."
            ),
            default="indexkv:default"
        )
    ]

    storage: Annotated[
        StorageSettings,
        Field(
            description="Storage backend configuration.",
            default_factory=StorageSettings
        )
    ]

    @field_validator("store")
    @classmethod
    def validate_store(cls, v: str) -> str:
        split_store_name(v)
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        configfile = get_configfile()
        if configfile is None:
            return init_settings, env_settings

        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=configfile),
        )
