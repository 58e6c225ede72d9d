import pytest
import yaml

from tests.fake.fake_storage import FakeStorage
from tests.helpers import FakeIndexKVConfig

from indexkv.core.storage.store import IndexedStore
from indexkv.infra.msgpack_serializer import MsgPackSerializer


@pytest.fixture
def serializer():
    return MsgPackSerializer()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def store(storage, serializer) -> IndexedStore:
    # small pages so that range tests cross page boundaries
    return IndexedStore(storage, serializer, batch_size=2)


@pytest.fixture
def config_file(tmp_path):
    file = tmp_path / "indexkv.yaml"

    data = {
        "store": "notepad:notes",
        "storage": {
            "backend": "lmdb",
            "data_dir": str(tmp_path / "data"),
            "map_size": 1 << 20,
            "sync": False,
            "batch_size": 16,
        }
    }

    file.write_text(yaml.dump(data))
    return file


@pytest.fixture
def indexkv_config(config_file, monkeypatch) -> FakeIndexKVConfig:
    monkeypatch.setenv("TEST_INDEXKVCONFIG", str(config_file))
    return FakeIndexKVConfig()
