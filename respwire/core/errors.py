class RespError(Exception):
    """
    Base class of every error raised by respwire.

    Callers that only want to know "the codec refused this" can catch
    RespError; every concrete error below is recoverable by the caller
    (drop the connection, ask for a retransmission, fix the value).
    """


class ProtocolError(RespError):
    """
    Malformed or unacceptable wire data.

    `offset` is the absolute position in the byte stream (counted from the
    first byte ever fed to the parser) at which the problem was detected.
    """
    def __init__(self, message: str, offset: int | None = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class InvalidInteger(ProtocolError):
    """An integer field is not a base-10 signed 64-bit integer."""


class InvalidLength(ProtocolError):
    """A bulk string or array length prefix is below -1."""


class LengthTooLarge(ProtocolError):
    """A declared length, a line or the receive buffer exceeds its configured cap."""


class MalformedLineTerminator(ProtocolError):
    """A field is not terminated by CRLF where one is required."""


class UnexpectedEof(ProtocolError):
    """The source ended before the value being parsed was complete."""


class UnknownTypeMarker(ProtocolError):
    """The first byte of a value is not one of `+ - : $ *`."""


class DepthExceeded(ProtocolError):
    """Arrays are nested deeper than the configured maximum."""


class TrailingData(ProtocolError):
    """Bytes remain after the single value a one-shot parse expected."""


class InvalidPayload(RespError, ValueError):
    """A value cannot be represented on the wire as constructed."""


class BridgeError(RespError):
    """Failure while mapping Python objects to or from protocol values."""


class TypeMismatch(BridgeError, TypeError):
    """
    The protocol value does not have the shape the target type expects.

    `path` locates the offending element inside the value being
    deserialized, e.g. ``tags[1]`` or ``owner.name``.
    """
    def __init__(
        self,
        expected: str,
        actual: str,
        path: str = "",
        detail: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        self.path = path

        where = f" at '{path}'" if path else ""
        message = f"expected {expected}, got {actual}{where}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnsupportedFloat(BridgeError, ValueError):
    """A float has no lossless integer representation under the active policy."""


class UnsupportedType(BridgeError, TypeError):
    """No adapter is known for a Python type."""
