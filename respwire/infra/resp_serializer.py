from typing import Any

from respwire.core.facade import deserialize, serialize
from respwire.core.models.config import CodecConfig
from respwire.core.ports.serializer import Serializer


class RespSerializer(Serializer):
    """
    RESP-based implementation of the Serializer interface.

    - deterministic encoding (map and struct order is kept as given)
    - binary safe: text travels as bulk strings
    - typed decoding when a target type is given, plain Python otherwise
    """
    def __init__(self, config: CodecConfig | None = None) -> None:
        self._config = config

    def serialize(self, message: Any) -> bytes:
        return serialize(message, self._config)

    def deserialize(self, data: bytes, target: Any = Any) -> Any:
        return deserialize(data, target, self._config)
