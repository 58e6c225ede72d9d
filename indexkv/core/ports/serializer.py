from typing import Protocol, Any


class Serializer(Protocol):
    """
    Encodes record values to the opaque bytes handed to the storage
    backend, and back.

    Implementations must be:
    - deterministic
    - pure (no side effects)
    - safe against malformed input
    """

    def serialize(self, value: Any) -> bytes:
        """Encode a Python object into bytes suitable for storage."""

    def deserialize(self, data: bytes) -> Any:
        """Decode stored bytes back into a Python object."""
