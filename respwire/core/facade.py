from typing import Any, TypeVar

from respwire.core.bridge.deserializer import Deserializer, deserialize_any
from respwire.core.bridge.serializer import ValueSerializer
from respwire.core.errors import BridgeError, TrailingData, UnexpectedEof
from respwire.core.models.config import CodecConfig
from respwire.core.models.value import RESP_TYPES, RespValue
from respwire.core.protocol.parser import NEED_MORE, Parser
from respwire.core.protocol.writer import encode

T = TypeVar("T")

__all__ = [
    "encode",
    "parse",
    "parse_prefix",
    "to_value",
    "from_value",
    "serialize",
    "deserialize",
]


def parse_prefix(data: bytes, config: CodecConfig | None = None) -> tuple[RespValue, int]:
    """
    Parse the value at the start of `data`.

    Returns the value and the number of bytes it occupies; bytes after it
    are left alone. Raises UnexpectedEof when `data` ends inside the value
    or is empty.
    """
    parser = Parser(config)
    parser.feed(data)
    parser.feed_eof()
    value = parser.get_value()
    if value is NEED_MORE:
        raise UnexpectedEof("no value in empty input", 0)
    return value, parser.offset


def parse(data: bytes, config: CodecConfig | None = None) -> RespValue:
    """Parse `data`, which must hold exactly one value."""
    value, consumed = parse_prefix(data, config)
    if consumed != len(data):
        raise TrailingData(f"{len(data) - consumed} bytes after the value", consumed)
    return value


def to_value(obj: Any, config: CodecConfig | None = None) -> RespValue:
    """Map any supported Python object onto a protocol value."""
    return ValueSerializer(config).run(obj)


def from_value(
    value: RespValue,
    target: type[T] | Any = Any,
    config: CodecConfig | None = None,
) -> T:
    """Build an instance of `target` from a protocol value."""
    try:
        return deserialize_any(Deserializer(value, config=config), target)
    except RecursionError as exc:
        raise BridgeError(f"value is nested too deeply to build {target!r}") from exc


def serialize(obj: Any, config: CodecConfig | None = None) -> bytes:
    return encode(to_value(obj, config))


def deserialize(
    data: bytes | bytearray | memoryview | RespValue,
    target: type[T] | Any = Any,
    config: CodecConfig | None = None,
) -> T:
    """
    Decode `data` straight into `target`. `data` is either the wire bytes
    of exactly one value or an already parsed protocol value.
    """
    if isinstance(data, RESP_TYPES):
        value = data
    else:
        value = parse(bytes(data), config)
    return from_value(value, target, config)
