from typing import Any


class IndexKVError(Exception):
    """Base class of every error raised by indexkv."""


class UnsupportedKeyType(IndexKVError, TypeError):
    """
    Raised at encode time when a key is not one of the supported shapes:
    int, float, str, date, datetime, or a tuple/list of those nested
    arbitrarily.
    """
    def __init__(self, key: Any, reason: str, index: int | None = None) -> None:
        self.key = key
        self.reason = reason
        self.index = index
        location = f" (operation #{index})" if index is not None else ""
        super().__init__(f"Unsupported key {key!r}{location}: {reason}")


class CorruptEncoding(IndexKVError, ValueError):
    """
    Raised at decode time when stored bytes do not parse under the
    key grammar.
    """
    def __init__(self, data: bytes, offset: int, reason: str) -> None:
        self.data = data
        self.offset = offset
        self.reason = reason
        super().__init__(
            f"Corrupt key encoding at byte {offset} of {data.hex()}: {reason}"
        )


class InvalidValue(IndexKVError, ValueError):
    def __init__(self, key: Any, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid value for key {key!r}: {reason}")


class InvalidBatchOperation(IndexKVError, ValueError):
    """
    Raised while validating a batch, before anything reaches the backend.
    `index` is the position of the first invalid operation.
    """
    def __init__(self, index: int, operation: Any, reason: str) -> None:
        self.index = index
        self.operation = operation
        self.reason = reason
        super().__init__(f"Invalid batch operation #{index}: {reason}")


class BackendError(IndexKVError):
    """Failure reported by the storage backend."""


class BackendUnavailable(BackendError):
    """The storage backend cannot be reached, opened, or was closed."""
