from typing import Any, Protocol


class Serializer(Protocol):
    """
    Defines the interface for encoding/decoding objects exchanged
    with the store.

    Implementations must be:
    - deterministic
    - pure (no side effects)
    - safe against malformed input
    """

    def serialize(self, message: Any) -> bytes:
        """Encode a Python object into bytes suitable for network transport."""

    def deserialize(self, data: bytes, target: Any = Any) -> Any:
        """Decode bytes received from the network into a Python object."""
