from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Self

from indexkv.core.errors import InvalidBatchOperation, InvalidValue, UnsupportedKeyType
from indexkv.core.ports.serializer import Serializer
from indexkv.core.ports.storage import BatchItem
from indexkv.core.storage.codec import Key, KeyCodec


class OperationType(StrEnum):
    PUT = "put"
    DEL = "del"

    @classmethod
    def parse(cls, value: Any) -> "OperationType | None":
        if value == "delete":
            return cls.DEL
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class BatchOperation:
    """
    A single step of a batch. A `put` must carry a value; None stands for
    a missing value. The value of a `del` is ignored.
    """
    type: OperationType | str
    key: Key
    value: Any = None

    @classmethod
    def put(cls, key: Key, value: Any) -> Self:
        return cls(type=OperationType.PUT, key=key, value=value)

    @classmethod
    def delete(cls, key: Key) -> Self:
        return cls(type=OperationType.DEL, key=key)


def serialize_value(serializer: Serializer, key: Key, value: Any) -> bytes:
    if value is None:
        raise InvalidValue(key, "value is required")

    try:
        return serializer.serialize(value)
    except (TypeError, ValueError, OverflowError) as ex:
        raise InvalidValue(key, f"value is not serializable: {ex}") from ex


class BatchBuilder:
    """
    Turns caller-supplied operations into the raw items submitted to
    Storage.apply_batch.

    The whole list is checked before anything is encoded, and everything
    is encoded before anything is sent: a malformed operation anywhere in
    the list fails the batch without touching the backend. Operations are
    accepted either as BatchOperation instances or as levelup-style
    mappings: {"type": "put", "key": ..., "value": ...}.
    """
    def __init__(self, serializer: Serializer) -> None:
        self._serializer = serializer

    def build(self, operations: Sequence[BatchOperation | Mapping]) -> list[BatchItem]:
        if isinstance(operations, (str, bytes)) or not isinstance(operations, Sequence):
            raise TypeError("`operations` must be a list")

        validated = [
            self._validate(index, op)
            for index, op in enumerate(operations)
        ]
        return [
            self._encode(index, op)
            for index, op in enumerate(validated)
        ]

    @staticmethod
    def _validate(index: int, op: Any) -> BatchOperation:
        if isinstance(op, Mapping):
            if "key" not in op:
                raise InvalidBatchOperation(index, op, "`key` is required")
            raw_type, key, value = op.get("type"), op["key"], op.get("value")
        elif isinstance(op, BatchOperation):
            raw_type, key, value = op.type, op.key, op.value
        else:
            raise InvalidBatchOperation(
                index, op, "operation must be a BatchOperation or a mapping"
            )

        op_type = OperationType.parse(raw_type)
        if op_type is None:
            raise InvalidBatchOperation(
                index, op, f"not valid operation `type`: {raw_type!r}"
            )

        if op_type is OperationType.PUT and value is None:
            raise InvalidBatchOperation(
                index, op, f"`value` is required for key {key!r}"
            )

        return BatchOperation(type=op_type, key=key, value=value)

    def _encode(self, index: int, op: BatchOperation) -> BatchItem:
        try:
            raw_key = KeyCodec.encode(op.key)
        except UnsupportedKeyType as ex:
            raise UnsupportedKeyType(op.key, ex.reason, index=index) from ex

        if op.type is OperationType.DEL:
            return raw_key, None

        try:
            return raw_key, serialize_value(self._serializer, op.key, op.value)
        except InvalidValue as ex:
            raise InvalidBatchOperation(index, op, ex.reason) from ex
