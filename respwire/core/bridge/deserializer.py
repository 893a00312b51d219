import collections.abc
import enum
import types
import typing
from collections.abc import Callable
from typing import Any

from respwire.core.bridge.shapes import (
    Variant,
    deserialize_variant_of,
    struct_adapter,
    variant_candidates,
)
from respwire.core.errors import BridgeError, TypeMismatch, UnsupportedType
from respwire.core.models.config import DEFAULT_CONFIG, CodecConfig
from respwire.core.models.value import (
    RESP_TYPES,
    TEXT_ENCODING,
    TEXT_ERRORS,
    Array,
    BulkString,
    Error,
    Integer,
    RespValue,
    SimpleString,
    kind_of,
    to_python,
)


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


class Deserializer:
    """
    Read side of the bridge: wraps one protocol value and hands its
    content out in the shape a type adapter asks for.

    Each `deserialize_*` method checks the kind of the wrapped value and
    raises TypeMismatch, naming the path of the value inside the document
    being decoded, when it does not fit. Compound methods return child
    deserializers in wire order.
    """
    def __init__(
        self,
        value: RespValue,
        path: str = "",
        config: CodecConfig | None = None,
        depth: int = 0,
    ) -> None:
        self._value = value
        self._path = path
        self._config = config or DEFAULT_CONFIG
        self._depth = depth

    @property
    def path(self) -> str:
        return self._path

    def _child(self, value: RespValue, path: str) -> "Deserializer":
        return Deserializer(value, path, self._config, self._depth + 1)

    def mismatch(self, expected: str, detail: str | None = None) -> TypeMismatch:
        actual = kind_of(self._value)
        if isinstance(self._value, Error):
            detail = detail or f"error reply {self._value.value!r}"
        return TypeMismatch(expected, actual, self._path, detail)

    def deserialize_value(self) -> RespValue:
        return self._value

    def deserialize_bool(self) -> bool:
        match self._value:
            case Integer(value=0):
                return False
            case Integer(value=1):
                return True
            case Integer(value=number):
                raise self.mismatch("Integer 0 or 1", f"got {number}")
            case _:
                raise self.mismatch("Integer")

    def deserialize_int(self) -> int:
        match self._value:
            case Integer(value=number):
                return number
            case _:
                raise self.mismatch("Integer")

    def deserialize_float(self) -> float:
        match self._value:
            case Integer(value=number):
                return float(number)
            case _:
                raise self.mismatch("Integer")

    def deserialize_str(self) -> str:
        match self._value:
            case BulkString(value=bytes() as payload):
                try:
                    return payload.decode(TEXT_ENCODING)
                except UnicodeDecodeError as exc:
                    raise self.mismatch("UTF-8 text", str(exc)) from exc
            case SimpleString(value=text):
                return text
            case _:
                raise self.mismatch("BulkString or SimpleString")

    def deserialize_bytes(self) -> bytes:
        match self._value:
            case BulkString(value=bytes() as payload):
                return payload
            case SimpleString(value=text):
                return text.encode(TEXT_ENCODING, TEXT_ERRORS)
            case _:
                raise self.mismatch("BulkString")

    def deserialize_option(self) -> "Deserializer | None":
        """None for an absent value (null bulk string or null array), else self."""
        match self._value:
            case BulkString(value=None) | Array(items=None):
                return None
            case _:
                return self

    def deserialize_seq(self) -> list["Deserializer"]:
        match self._value:
            case Array(items=tuple() as items):
                if self._depth >= self._config.max_depth:
                    raise BridgeError(
                        f"value nesting exceeds the maximum depth of "
                        f"{self._config.max_depth} at '{self._path}'"
                    )
                return [
                    self._child(item, f"{self._path}[{i}]")
                    for i, item in enumerate(items)
                ]
            case _:
                raise self.mismatch("Array")

    def deserialize_map(self) -> list[tuple["Deserializer", "Deserializer"]]:
        elements = self.deserialize_seq()
        if len(elements) % 2:
            raise self.mismatch(
                "Array of key/value pairs", f"odd element count {len(elements)}"
            )
        return list(zip(elements[::2], elements[1::2]))

    def deserialize_struct(
        self,
        name: str,
        fields: tuple[str, ...],
    ) -> dict[str, "Deserializer"]:
        """
        Map every declared field to the deserializer of its value. Unknown,
        duplicated and missing fields are errors.
        """
        try:
            pairs = self.deserialize_map()
        except TypeMismatch as exc:
            raise self.mismatch(f"struct {name}", str(exc)) from exc

        known = set(fields)
        entries: dict[str, Deserializer] = {}
        for key, value in pairs:
            field = key.deserialize_str()
            if field not in known:
                raise TypeMismatch(f"a field of {name}", f"unknown field {field!r}", self._path)
            if field in entries:
                raise TypeMismatch(f"a field of {name}", f"duplicate field {field!r}", self._path)
            entries[field] = self._child(value.deserialize_value(), _join(self._path, field))

        missing = [field for field in fields if field not in entries]
        if missing:
            raise TypeMismatch(
                f"struct {name}", f"missing fields {', '.join(missing)}", self._path
            )
        return entries

    def deserialize_unit_variant(self, enum_name: str, variants: collections.abc.Collection[str]) -> str:
        match self._value:
            case SimpleString(value=text):
                name = text
            case BulkString(value=bytes()):
                name = self.deserialize_str()
            case _:
                raise self.mismatch(f"SimpleString naming a {enum_name} member")
        if name not in variants:
            raise self.mismatch(f"a {enum_name} member", f"unknown member {name!r}")
        return name

    def deserialize_variant(self) -> tuple[str, list["Deserializer"]]:
        """Split `[name, payload...]` into the variant name and its payload."""
        elements = self.deserialize_seq()
        if not elements:
            raise self.mismatch("Array [variant name, payload...]", "empty array")
        head, *payload = elements
        return head.deserialize_str(), payload


DeserializeFn = Callable[[Deserializer], Any]

_registry: dict[Any, DeserializeFn] = {}

_NONE_TYPE = type(None)
_SEQUENCES = (list, collections.abc.Sequence, collections.abc.MutableSequence, collections.abc.Iterable)
_SETS = (set, collections.abc.Set, collections.abc.MutableSet)
_MAPPINGS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def register_deserializer(cls: Any, func: DeserializeFn | None = None):
    """
    Register how to build `cls` from a Deserializer. Usable as a decorator:

        @register_deserializer(Point)
        def _(de): ...
    """
    def decorator(f: DeserializeFn) -> DeserializeFn:
        _registry[cls] = f
        return f

    if func is None:
        return decorator
    return decorator(func)


def deserialize_any(de: Deserializer, target: Any) -> Any:
    """
    Build an instance of `target` from the value wrapped by `de`.

    `target` is a type or a typing construct: scalars, Optional and other
    unions, list/tuple/set/frozenset/dict (parameterized or not), enums,
    dataclasses and pydantic models, Variant unions, protocol value types
    and Any. Types may also provide a `__resp_deserialize__(de)` classmethod
    or be registered with `register_deserializer`.
    """
    if target is Any or target is object:
        return to_python(de.deserialize_value())

    if target in _registry:
        return _registry[target](de)

    hook = getattr(target, "__resp_deserialize__", None)
    if hook is not None:
        return hook(de)

    origin = typing.get_origin(target)
    args = typing.get_args(target)

    if origin is typing.Annotated:
        return deserialize_any(de, args[0])
    if origin is typing.Union or origin is types.UnionType:
        return _deserialize_union(de, args)
    if origin is typing.Literal:
        return _deserialize_literal(de, args)
    if origin is not None:
        return _deserialize_generic(de, origin, args)

    if target is None or target is _NONE_TYPE:
        if de.deserialize_option() is not None:
            raise de.mismatch("null BulkString")
        return None

    if not isinstance(target, type):
        raise UnsupportedType(f"cannot deserialize into {target!r}")

    if target in RESP_TYPES:
        value = de.deserialize_value()
        if not isinstance(value, target):
            raise de.mismatch(target.__name__)
        return value

    if issubclass(target, enum.Enum):
        return target[de.deserialize_unit_variant(target.__name__, target.__members__)]

    if target is bool:
        return de.deserialize_bool()
    if target is int:
        return de.deserialize_int()
    if target is float:
        return de.deserialize_float()
    if target is str:
        return de.deserialize_str()
    if target is bytes:
        return de.deserialize_bytes()
    if target is bytearray:
        return bytearray(de.deserialize_bytes())

    if target in (list, tuple, set, frozenset, dict):
        return _deserialize_generic(de, target, ())

    adapter = struct_adapter(target)
    if adapter is not None:
        return adapter.deserialize(de)

    if issubclass(target, Variant):
        candidates = variant_candidates(target)
        if candidates:
            return deserialize_variant_of(de, candidates)

    raise UnsupportedType(f"no deserializer for type {target.__name__}")


def _deserialize_union(de: Deserializer, args: tuple[Any, ...]) -> Any:
    members = [arg for arg in args if arg is not _NONE_TYPE]

    if len(members) < len(args):
        if de.deserialize_option() is None:
            return None

    if len(members) == 1:
        return deserialize_any(de, members[0])

    if all(member in RESP_TYPES for member in members):
        value = de.deserialize_value()
        if not isinstance(value, tuple(members)):
            raise de.mismatch(" | ".join(member.__name__ for member in members))
        return value

    adapters = [struct_adapter(member) for member in members]
    if all(adapter is not None and adapter.is_variant for adapter in adapters):
        candidates = {}
        for member in members:
            candidates.update(variant_candidates(member))
        return deserialize_variant_of(de, candidates)

    # untagged union: first member that fits wins
    failures = []
    for member in members:
        try:
            return deserialize_any(de, member)
        except TypeMismatch as exc:
            failures.append(str(exc))
    raise de.mismatch(
        " | ".join(getattr(member, "__name__", repr(member)) for member in members),
        "; ".join(failures),
    )


def _deserialize_literal(de: Deserializer, args: tuple[Any, ...]) -> Any:
    value = to_python(de.deserialize_value())
    for allowed in args:
        candidate = value
        if isinstance(allowed, bool) and type(value) is int and value in (0, 1):
            candidate = bool(value)
        elif isinstance(allowed, str) and isinstance(value, bytes):
            candidate = value.decode(TEXT_ENCODING, TEXT_ERRORS)
        if candidate == allowed and type(candidate) is type(allowed):
            return allowed
    raise de.mismatch(f"one of {args!r}")


def _hashed(de: Deserializer, factory: Callable[[list], Any], items: list) -> Any:
    try:
        return factory(items)
    except TypeError as exc:
        raise de.mismatch("Array of hashable elements", str(exc)) from exc


def _deserialize_generic(de: Deserializer, origin: Any, args: tuple[Any, ...]) -> Any:
    if origin is tuple:
        elements = de.deserialize_seq()
        if not args:
            return tuple(deserialize_any(e, Any) for e in elements)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(deserialize_any(e, args[0]) for e in elements)
        if len(elements) != len(args):
            raise de.mismatch(
                f"Array of {len(args)} elements", f"{len(elements)} elements"
            )
        return tuple(deserialize_any(e, t) for e, t in zip(elements, args))

    if origin in _SEQUENCES:
        item_type = args[0] if args else Any
        return [deserialize_any(e, item_type) for e in de.deserialize_seq()]

    if origin is frozenset or origin in _SETS:
        item_type = args[0] if args else Any
        items = [deserialize_any(e, item_type) for e in de.deserialize_seq()]
        return _hashed(de, frozenset if origin is frozenset else set, items)

    if origin in _MAPPINGS:
        key_type, value_type = args if args else (Any, Any)
        pairs = [
            (deserialize_any(k, key_type), deserialize_any(v, value_type))
            for k, v in de.deserialize_map()
        ]
        return _hashed(de, dict, pairs)

    raise UnsupportedType(f"cannot deserialize into {origin!r}[{args!r}]")
