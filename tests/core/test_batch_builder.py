import pytest

from indexkv.core.errors import InvalidBatchOperation, UnsupportedKeyType
from indexkv.core.storage.batch import BatchBuilder, BatchOperation, OperationType
from indexkv.core.storage.codec import KeyCodec


@pytest.fixture
def builder(serializer) -> BatchBuilder:
    return BatchBuilder(serializer)


def test_build_mixed_operations(builder, serializer):
    items = builder.build([
        {"type": "put", "key": 1, "value": "one"},
        BatchOperation.delete("x"),
        BatchOperation.put(("a", 2), {"n": 2}),
        {"type": "delete", "key": 3},
    ])

    assert items == [
        (KeyCodec.encode(1), serializer.serialize("one")),
        (KeyCodec.encode("x"), None),
        (KeyCodec.encode(("a", 2)), serializer.serialize({"n": 2})),
        (KeyCodec.encode(3), None),
    ]


def test_build_empty(builder):
    assert builder.build([]) == []


def test_delete_ignores_value(builder):
    items = builder.build([{"type": "del", "key": 1, "value": "ignored"}])
    assert items == [(KeyCodec.encode(1), None)]


@pytest.mark.parametrize("operations", ["put", b"put", None, 42, {"type": "put"}])
def test_operations_must_be_a_list(builder, operations):
    with pytest.raises(TypeError):
        builder.build(operations)


@pytest.mark.parametrize(
    "bad_op, reason",
    [
        ({"type": "get", "key": 1}, "not valid operation `type`"),
        ({"key": 1, "value": 2}, "not valid operation `type`"),
        ({"type": "put", "key": 1}, "`value` is required"),
        ({"type": "put", "key": 1, "value": None}, "`value` is required"),
        ({"type": "put", "value": 1}, "`key` is required"),
        (BatchOperation(type="merge", key=1, value=2), "not valid operation `type`"),
        (("put", 1, 2), "must be a BatchOperation or a mapping"),
    ]
)
def test_invalid_operation_reports_index(builder, bad_op, reason):
    ops = [
        BatchOperation.put(1, "a"),
        BatchOperation.delete(2),
        bad_op,
    ]

    with pytest.raises(InvalidBatchOperation) as exc_info:
        builder.build(ops)

    assert exc_info.value.index == 2
    assert exc_info.value.operation is bad_op
    assert reason in str(exc_info.value)


def test_first_invalid_operation_wins(builder):
    ops = [
        {"type": "bad", "key": 1},
        {"type": "put", "key": 2},
    ]

    with pytest.raises(InvalidBatchOperation) as exc_info:
        builder.build(ops)

    assert exc_info.value.index == 0


def test_every_operation_is_checked_before_keys_are_encoded(builder):
    ops = [
        BatchOperation.put((None,), "unsupported key"),
        {"type": "nope", "key": 1},
    ]

    with pytest.raises(InvalidBatchOperation) as exc_info:
        builder.build(ops)

    assert exc_info.value.index == 1


def test_unsupported_key_reports_index(builder):
    ops = [
        BatchOperation.put(1, "a"),
        BatchOperation.delete(b"raw"),
    ]

    with pytest.raises(UnsupportedKeyType) as exc_info:
        builder.build(ops)

    assert exc_info.value.index == 1
    assert exc_info.value.key == b"raw"


def test_unserializable_value_reports_index(builder):
    ops = [BatchOperation.put(1, object())]

    with pytest.raises(InvalidBatchOperation) as exc_info:
        builder.build(ops)

    assert exc_info.value.index == 0
    assert "not serializable" in exc_info.value.reason


def test_operation_type_parse():
    assert OperationType.parse("put") is OperationType.PUT
    assert OperationType.parse("del") is OperationType.DEL
    assert OperationType.parse("delete") is OperationType.DEL
    assert OperationType.parse(OperationType.PUT) is OperationType.PUT
    assert OperationType.parse("PUT") is None
    assert OperationType.parse(None) is None
    assert OperationType.parse(["put"]) is None
