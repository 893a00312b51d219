from dataclasses import dataclass
from typing import Any, TypeAlias

from respwire.core.errors import InvalidPayload

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1

TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"


def _check_line(kind: str, text: Any) -> None:
    if not isinstance(text, str):
        raise InvalidPayload(f"{kind} payload must be str, not {type(text).__name__}")
    if "\r" in text or "\n" in text:
        raise InvalidPayload(f"{kind} payload must not contain CR or LF: {text!r}")
    try:
        text.encode(TEXT_ENCODING, TEXT_ERRORS)
    except UnicodeEncodeError as exc:
        raise InvalidPayload(f"{kind} payload is not encodable: {exc}") from exc


@dataclass(frozen=True, slots=True)
class SimpleString:
    """
    Short, non binary-safe text (`+` marker).
    The payload never contains a line terminator.
    """
    value: str

    def __post_init__(self) -> None:
        _check_line("SimpleString", self.value)


@dataclass(frozen=True, slots=True)
class Error:
    """
    Error reply (`-` marker).

    Same textual constraint as SimpleString, but callers should read it as
    a failure signal rather than as data. By convention the first word is
    an error code, e.g. ``ERR`` or ``WRONGTYPE``.
    """
    value: str

    def __post_init__(self) -> None:
        _check_line("Error", self.value)

    @property
    def code(self) -> str:
        return self.value.split(" ", 1)[0]


@dataclass(frozen=True, slots=True)
class Integer:
    """Signed 64-bit integer (`:` marker)."""
    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidPayload(
                f"Integer payload must be int, not {type(self.value).__name__}"
            )
        if not INT64_MIN <= self.value <= INT64_MAX:
            raise InvalidPayload(f"{self.value} does not fit in a signed 64-bit integer")


@dataclass(frozen=True, slots=True)
class BulkString:
    """
    Length-prefixed binary-safe string (`$` marker).
    `None` is the null bulk string, distinct from the empty string.
    """
    value: bytes | None

    def __post_init__(self) -> None:
        if self.value is None or type(self.value) is bytes:
            return
        if not isinstance(self.value, (bytearray, memoryview)):
            raise InvalidPayload(
                f"BulkString payload must be bytes-like, not {type(self.value).__name__}"
            )
        object.__setattr__(self, "value", bytes(self.value))

    @property
    def is_null(self) -> bool:
        return self.value is None


@dataclass(frozen=True, slots=True)
class Array:
    """
    Ordered sequence of protocol values (`*` marker).
    `None` is the null array, distinct from the empty array.
    """
    items: tuple["RespValue", ...] | None

    def __post_init__(self) -> None:
        if self.items is None:
            return
        if isinstance(self.items, (str, bytes, bytearray)):
            raise InvalidPayload("Array items must be an iterable of protocol values")
        items = tuple(self.items)
        for item in items:
            if not isinstance(item, RESP_TYPES):
                raise InvalidPayload(
                    f"Array item must be a protocol value, not {type(item).__name__}"
                )
        object.__setattr__(self, "items", items)

    @property
    def is_null(self) -> bool:
        return self.items is None

    def __len__(self) -> int:
        return 0 if self.items is None else len(self.items)

    def __iter__(self):
        return iter(self.items or ())


RespValue: TypeAlias = SimpleString | Error | Integer | BulkString | Array

RESP_TYPES = (SimpleString, Error, Integer, BulkString, Array)

NULL_BULK = BulkString(None)
NULL_ARRAY = Array(None)


def is_null(value: RespValue) -> bool:
    """Return True for the null bulk string and the null array."""
    match value:
        case BulkString(value=None) | Array(items=None):
            return True
        case _:
            return False


def kind_of(value: Any) -> str:
    """Human-readable kind name, used in error messages."""
    match value:
        case BulkString(value=None):
            return "null BulkString"
        case Array(items=None):
            return "null Array"
        case _:
            return type(value).__name__


def _leaf_to_python(value: RespValue) -> Any:
    match value:
        case SimpleString(value=text):
            return text
        case Error():
            return value
        case Integer(value=number):
            return number
        case BulkString(value=payload):
            return payload
        case Array(items=None):
            return None
        case _:
            raise InvalidPayload(f"not a protocol value: {type(value).__name__}")


def to_python(value: RespValue) -> Any:
    """
    Convert a protocol value into plain Python objects.

    SimpleString becomes str, Integer int, BulkString bytes (or None) and
    Array a list (or None), recursively. Error values are returned as they
    are so that callers can still tell them apart from data.

    Nested arrays are walked with an explicit stack, so any nesting depth
    the parser accepted converts.
    """
    if not isinstance(value, Array) or value.items is None:
        return _leaf_to_python(value)

    root: list[Any] = []
    stack = [(iter(value.items), root)]
    while stack:
        items, out = stack[-1]
        for item in items:
            if isinstance(item, Array) and item.items is not None:
                nested: list[Any] = []
                out.append(nested)
                stack.append((iter(item.items), nested))
                break
            out.append(_leaf_to_python(item))
        else:
            stack.pop()
    return root
