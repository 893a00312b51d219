import logging
import re
from collections.abc import Iterator

from respwire.core.errors import (
    DepthExceeded,
    InvalidInteger,
    InvalidLength,
    LengthTooLarge,
    MalformedLineTerminator,
    ProtocolError,
    UnexpectedEof,
    UnknownTypeMarker,
)
from respwire.core.models.config import DEFAULT_CONFIG, CodecConfig
from respwire.core.models.value import (
    INT64_MAX,
    INT64_MIN,
    NULL_ARRAY,
    NULL_BULK,
    TEXT_ENCODING,
    TEXT_ERRORS,
    Array,
    BulkString,
    Error,
    Integer,
    RespValue,
    SimpleString,
)

SIMPLE_STRING = ord("+")
ERROR = ord("-")
INTEGER = ord(":")
BULK_STRING = ord("$")
ARRAY = ord("*")

MARKERS = frozenset((SIMPLE_STRING, ERROR, INTEGER, BULK_STRING, ARRAY))

CR = ord("\r")
LF = ord("\n")
CRLF = b"\r\n"
NULL_LENGTH = -1

_INTEGER_RE = re.compile(rb"-?[0-9]+")


class _NeedMore:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NEED_MORE"

    def __bool__(self) -> bool:
        return False


NEED_MORE = _NeedMore()
"""
Returned by Parser.get_value() when the buffered bytes do not hold a
complete value yet. It is not an error: feed more bytes and call again.
"""


class _Frame:
    """An array whose header was read but whose elements are still arriving."""
    __slots__ = ("length", "items")

    def __init__(self, length: int) -> None:
        self.length = length
        self.items: list[RespValue] = []

    @property
    def complete(self) -> bool:
        return len(self.items) == self.length


class Parser:
    """
    Incremental parser turning a byte stream into protocol values.

    Bytes are handed over with `feed()` in chunks of any size, and complete
    values are pulled with `get_value()`. When the buffered bytes stop in
    the middle of a value, `get_value()` returns NEED_MORE and keeps what it
    already understood: the position up to which a line was scanned for its
    terminator, the length of a bulk string whose header was read, and the
    elements of every array still being filled, kept on an explicit stack.
    The next call resumes from there, so a value delivered one byte at a
    time is scanned once, not once per byte.

    The parser consumes exactly the bytes of each value it returns; bytes of
    the following value stay buffered for the next call. Array nesting is
    handled without recursion and bounded by `CodecConfig.max_depth`.

    Any ProtocolError resets the parser, dropping its buffer: once the
    stream is malformed there is no reliable way to find the start of the
    next value. The caller is expected to drop the connection.

    A Parser belongs to a single stream and is not thread-safe; independent
    streams use independent parsers.
    """
    def __init__(self, config: CodecConfig | None = None) -> None:
        self._config = config or DEFAULT_CONFIG
        self._buffer = bytearray()
        self._pos = 0
        self._scan = 0
        self._consumed = 0
        self._bulk_length: int | None = None
        self._stack: list[_Frame] = []
        self._eof = False
        self._logger = logging.getLogger("core.protocol.parser")

    @property
    def has_pending(self) -> bool:
        """True when a value is partially parsed or unparsed bytes are buffered."""
        return (
            bool(self._stack)
            or self._bulk_length is not None
            or self._pos < len(self._buffer)
        )

    @property
    def offset(self) -> int:
        """Absolute stream position of the next byte to parse."""
        return self._consumed + self._pos

    def feed(self, data: bytes | bytearray | memoryview) -> None:
        if not data:
            return

        self._buffer.extend(data)

        unread = len(self._buffer) - self._pos
        if unread > self._config.max_buffer_size:
            exc = LengthTooLarge(
                f"{unread} unparsed bytes exceed the buffer limit of "
                f"{self._config.max_buffer_size}",
                self.offset,
            )
            self._logger.warning(f"Buffer overflow: {exc}")
            self.reset()
            raise exc

    def feed_eof(self) -> None:
        """
        Signal that the source has no more bytes. A value still incomplete
        at that point makes the next get_value() raise UnexpectedEof.
        """
        self._eof = True

    def get_value(self) -> RespValue | _NeedMore:
        try:
            value = self._parse()
        except ProtocolError as exc:
            if isinstance(exc, (LengthTooLarge, DepthExceeded)):
                self._logger.warning(f"Rejecting input: {exc}")
            else:
                self._logger.debug(f"Rejecting input: {exc}")
            self.reset()
            raise

        if value is NEED_MORE:
            if self._eof and self.has_pending:
                exc = UnexpectedEof(
                    "source ended in the middle of a value",
                    self._consumed + len(self._buffer),
                )
                self._logger.debug(f"Rejecting input: {exc}")
                self.reset()
                raise exc
            self._compact()
            return NEED_MORE

        # Compacting after every value would make a large pipelined buffer
        # quadratic to drain.
        if self._pos > len(self._buffer) // 2:
            self._compact()
        return value

    def __iter__(self) -> Iterator[RespValue]:
        """Yield every complete value currently buffered."""
        while True:
            value = self.get_value()
            if value is NEED_MORE:
                return
            yield value

    def reset(self) -> None:
        self._consumed += len(self._buffer)
        self._buffer = bytearray()
        self._pos = 0
        self._scan = 0
        self._bulk_length = None
        self._stack = []
        self._eof = False

    def _compact(self) -> None:
        if self._pos:
            del self._buffer[:self._pos]
            self._consumed += self._pos
            self._scan = max(0, self._scan - self._pos)
            self._pos = 0

    def _parse(self) -> RespValue | _NeedMore:
        while True:
            if self._bulk_length is not None:
                value = self._read_bulk_payload(self._bulk_length)
                if value is NEED_MORE:
                    return NEED_MORE
            else:
                value = self._read_header()
                if value is NEED_MORE:
                    return NEED_MORE
                if value is None:
                    # array opened or bulk header read, keep going
                    continue

            value = self._fold(value)
            if value is not None:
                return value

    def _fold(self, value: RespValue) -> RespValue | None:
        """
        Append a completed value to the innermost open array, closing every
        array it completes. Returns the finished top-level value, or None
        while an array still waits for elements.
        """
        while self._stack:
            frame = self._stack[-1]
            frame.items.append(value)
            if not frame.complete:
                return None
            self._stack.pop()
            value = Array(tuple(frame.items))
        return value

    def _read_header(self) -> RespValue | _NeedMore | None:
        buf = self._buffer
        start = self._pos
        if start >= len(buf):
            return NEED_MORE

        marker = buf[start]
        if marker not in MARKERS:
            raise UnknownTypeMarker(
                f"unknown type marker {bytes((marker,))!r}", self._consumed + start
            )

        line = self._read_line()
        if line is NEED_MORE:
            return NEED_MORE

        offset = self._consumed + start
        if marker == SIMPLE_STRING:
            return SimpleString(line.decode(TEXT_ENCODING, TEXT_ERRORS))
        if marker == ERROR:
            return Error(line.decode(TEXT_ENCODING, TEXT_ERRORS))
        if marker == INTEGER:
            return Integer(self._parse_int(line, offset))
        if marker == BULK_STRING:
            return self._open_bulk(self._parse_int(line, offset), offset)
        return self._open_array(self._parse_int(line, offset), offset)

    def _read_line(self) -> bytes | _NeedMore:
        """
        Read the line starting at the current position, marker included,
        and return its content without the marker and the CRLF.
        """
        buf = self._buffer
        start = self._pos
        end = len(buf)
        scan = max(self._scan, start + 1)

        cr = buf.find(b"\r", scan)
        lf = buf.find(b"\n", scan, end if cr == -1 else cr)
        if lf != -1:
            raise MalformedLineTerminator(
                "line feed without a preceding carriage return", self._consumed + lf
            )

        if cr == -1 or cr + 1 == end:
            self._scan = end if cr == -1 else cr
            if self._scan - start - 1 > self._config.max_line_length:
                raise LengthTooLarge(
                    f"line exceeds {self._config.max_line_length} bytes",
                    self._consumed + start,
                )
            return NEED_MORE

        if buf[cr + 1] != LF:
            raise MalformedLineTerminator(
                "carriage return not followed by a line feed", self._consumed + cr
            )

        if cr - start - 1 > self._config.max_line_length:
            raise LengthTooLarge(
                f"line exceeds {self._config.max_line_length} bytes",
                self._consumed + start,
            )

        line = bytes(buf[start + 1:cr])
        self._pos = cr + 2
        self._scan = self._pos
        return line

    @staticmethod
    def _parse_int(line: bytes, offset: int) -> int:
        if _INTEGER_RE.fullmatch(line) is None:
            raise InvalidInteger(f"invalid integer field {line!r}", offset)
        number = int(line)
        if not INT64_MIN <= number <= INT64_MAX:
            raise InvalidInteger(f"integer {number} does not fit in 64 bits", offset)
        return number

    def _open_bulk(self, length: int, offset: int) -> BulkString | None:
        if length == NULL_LENGTH:
            return NULL_BULK
        if length < NULL_LENGTH:
            raise InvalidLength(f"invalid bulk string length {length}", offset)
        if length > self._config.max_bulk_length:
            raise LengthTooLarge(
                f"bulk string length {length} exceeds the maximum of "
                f"{self._config.max_bulk_length}",
                offset,
            )
        self._bulk_length = length
        return None

    def _read_bulk_payload(self, length: int) -> BulkString | _NeedMore:
        buf = self._buffer
        start = self._pos
        stop = start + length
        available = len(buf)

        if available > stop and buf[stop] != CR:
            raise MalformedLineTerminator(
                f"bulk string payload longer than its declared {length} bytes",
                self._consumed + stop,
            )
        if available < stop + 2:
            return NEED_MORE
        if buf[stop + 1] != LF:
            raise MalformedLineTerminator(
                "bulk string payload not followed by CRLF", self._consumed + stop + 1
            )

        payload = bytes(buf[start:stop])
        self._pos = stop + 2
        self._scan = self._pos
        self._bulk_length = None
        return BulkString(payload)

    def _open_array(self, length: int, offset: int) -> Array | None:
        if length == NULL_LENGTH:
            return NULL_ARRAY
        if length < NULL_LENGTH:
            raise InvalidLength(f"invalid array length {length}", offset)
        if length > self._config.max_array_length:
            raise LengthTooLarge(
                f"array length {length} exceeds the maximum of "
                f"{self._config.max_array_length}",
                offset,
            )

        depth = len(self._stack) + 1
        if depth > self._config.max_depth:
            raise DepthExceeded(
                f"array nesting exceeds the maximum depth of {self._config.max_depth}",
                offset,
            )

        if length == 0:
            return Array(())
        self._stack.append(_Frame(length))
        return None
