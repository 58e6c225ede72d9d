import msgpack
from typing import Any

from indexkv.core.ports.serializer import Serializer


class MsgPackSerializer(Serializer):
    """
    MsgPack-based implementation of the value Serializer.

    - deterministic binary encoding
    - compact
    - timezone-aware datetimes are stored as msgpack timestamps
    - tuples come back as lists
    """
    def serialize(self, value: Any) -> bytes:
        return msgpack.packb(value, use_bin_type=True, datetime=True)

    def deserialize(self, data: bytes) -> Any:
        return msgpack.unpackb(data, raw=False, timestamp=3)
