from collections.abc import Iterable

from respwire.core.errors import InvalidPayload
from respwire.core.models.value import (
    TEXT_ENCODING,
    TEXT_ERRORS,
    Array,
    BulkString,
    Error,
    Integer,
    RespValue,
    SimpleString,
)
from respwire.core.ports.stream import ByteSink

CRLF = b"\r\n"
NULL_BULK_BYTES = b"$-1\r\n"
NULL_ARRAY_BYTES = b"*-1\r\n"


def encode(value: RespValue) -> bytes:
    """
    Render one protocol value into its exact wire bytes.

    The value is rendered completely in memory: an invalid element
    anywhere in the tree raises InvalidPayload before a single byte is
    handed to anyone. Nested arrays are walked with an explicit stack, so
    any nesting depth the parser accepted renders back.
    """
    chunks: list[bytes] = []
    stack = [iter((value,))]
    while stack:
        for item in stack[-1]:
            match item:
                case SimpleString(value=text):
                    chunks.append(b"+" + text.encode(TEXT_ENCODING, TEXT_ERRORS) + CRLF)
                case Error(value=text):
                    chunks.append(b"-" + text.encode(TEXT_ENCODING, TEXT_ERRORS) + CRLF)
                case Integer(value=number):
                    chunks.append(b":%d\r\n" % number)
                case BulkString(value=None):
                    chunks.append(NULL_BULK_BYTES)
                case BulkString(value=payload):
                    chunks.append(b"$%d\r\n" % len(payload))
                    chunks.append(payload)
                    chunks.append(CRLF)
                case Array(items=None):
                    chunks.append(NULL_ARRAY_BYTES)
                case Array(items=items):
                    chunks.append(b"*%d\r\n" % len(items))
                    stack.append(iter(items))
                    break
                case _:
                    raise InvalidPayload(
                        f"cannot encode {type(item).__name__}, not a protocol value"
                    )
        else:
            stack.pop()
    return b"".join(chunks)



def encode_command(*args: str | bytes | int | float) -> bytes:
    """
    Render a request the way the store expects to receive it: an array of
    bulk strings. Text is UTF-8 encoded, numbers are sent as their decimal
    representation.
    """
    return encode(Array(tuple(BulkString(_command_arg(arg)) for arg in args)))


def _command_arg(arg: str | bytes | int | float) -> bytes:
    if isinstance(arg, (bytes, bytearray, memoryview)):
        return bytes(arg)
    if isinstance(arg, str):
        return arg.encode(TEXT_ENCODING)
    if isinstance(arg, bool):
        raise InvalidPayload("booleans are ambiguous as command arguments, pass 0/1")
    if isinstance(arg, (int, float)):
        return repr(arg).encode()
    raise InvalidPayload(f"unsupported command argument type {type(arg).__name__}")


class Writer:
    """
    Writes protocol values to a byte sink.

    Each call renders its values fully before calling `sink.write()` once,
    so a sink never receives the partial encoding of an invalid value.
    """
    def __init__(self, sink: ByteSink) -> None:
        self._sink = sink

    def write(self, value: RespValue) -> None:
        self._sink.write(encode(value))

    def write_many(self, values: Iterable[RespValue]) -> None:
        data = b"".join(encode(value) for value in values)
        if data:
            self._sink.write(data)
