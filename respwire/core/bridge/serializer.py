import enum
import functools
import math
from collections.abc import Callable
from typing import Any, Protocol

from respwire.core.errors import BridgeError, InvalidPayload, UnsupportedFloat, UnsupportedType
from respwire.core.models.config import DEFAULT_CONFIG, CodecConfig, FloatPolicy
from respwire.core.models.value import (
    INT64_MAX,
    INT64_MIN,
    NULL_BULK,
    RESP_TYPES,
    TEXT_ENCODING,
    Array,
    BulkString,
    Integer,
    RespValue,
    SimpleString,
)


class SeqBuilder(Protocol):
    def element(self, obj: Any) -> None: ...
    def end(self) -> None: ...


class MapBuilder(Protocol):
    def entry(self, key: Any, value: Any) -> None: ...
    def end(self) -> None: ...


class StructBuilder(Protocol):
    def field(self, name: str, value: Any) -> None: ...
    def end(self) -> None: ...


class VariantBuilder(Protocol):
    def payload(self, obj: Any) -> None: ...
    def end(self) -> None: ...


class Serializer(Protocol):
    """
    The closed set of shapes a Python object can describe itself with.

    A type adapter calls exactly one of these per value: a scalar method,
    or a `begin_*` method followed by the builder calls for its children
    and a final `end()`. Adapters never see protocol values or bytes; how
    each shape lands on the wire is the serializer's business.
    """

    def serialize_bool(self, value: bool) -> None: ...

    def serialize_int(self, value: int) -> None: ...

    def serialize_float(self, value: float) -> None: ...

    def serialize_str(self, value: str, simple: bool = False) -> None: ...

    def serialize_bytes(self, value: bytes) -> None: ...

    def serialize_none(self) -> None: ...

    def serialize_value(self, value: RespValue) -> None: ...

    def serialize_unit_variant(self, enum_name: str, variant: str) -> None: ...

    def begin_seq(self, length: int) -> SeqBuilder: ...

    def begin_map(self, length: int) -> MapBuilder: ...

    def begin_struct(self, name: str, length: int) -> StructBuilder: ...

    def begin_variant(self, enum_name: str, variant: str) -> VariantBuilder: ...


class _Compound:
    """Collects the children of a sequence-like shape into an Array."""
    def __init__(self, owner: "ValueSerializer", kind: str, length: int | None) -> None:
        self._owner = owner
        self._kind = kind
        self._length = length
        self._count = 0
        self._items: list[RespValue] = []
        self._closed = False

    def _push(self, obj: Any) -> None:
        if self._closed:
            raise BridgeError(f"{self._kind} already ended")
        self._items.append(self._owner.child(obj))

    def _finish(self) -> None:
        if self._closed:
            raise BridgeError(f"{self._kind} already ended")
        if self._length is not None and self._count != self._length:
            raise BridgeError(
                f"{self._kind} declared {self._length} elements but received {self._count}"
            )
        self._closed = True
        self._owner.emit(Array(tuple(self._items)))


class _Seq(_Compound):
    def element(self, obj: Any) -> None:
        self._push(obj)
        self._count += 1

    def end(self) -> None:
        self._finish()


class _Map(_Compound):
    def entry(self, key: Any, value: Any) -> None:
        self._push(key)
        self._push(value)
        self._count += 1

    def end(self) -> None:
        self._finish()


class _Struct(_Compound):
    def field(self, name: str, value: Any) -> None:
        self._push(name)
        self._push(value)
        self._count += 1

    def end(self) -> None:
        self._finish()


class _Variant(_Compound):
    def __init__(self, owner: "ValueSerializer", variant: str) -> None:
        super().__init__(owner, f"variant {variant}", None)
        self._items.append(BulkString(variant.encode(TEXT_ENCODING)))

    def payload(self, obj: Any) -> None:
        self._push(obj)

    def end(self) -> None:
        self._finish()


class ValueSerializer:
    """
    Serializer producing a protocol value.

    Usage: `ValueSerializer(config).run(obj)`. The mapping applied here is
    the wire compatibility contract of the bridge:

    - bool, int -> Integer (bool as 1/0)
    - float -> Integer when integral, else per `CodecConfig.float_policy`
    - str -> BulkString (UTF-8), SimpleString only when asked for
    - bytes -> BulkString
    - None -> null BulkString
    - sequences, maps and structs -> Array (maps and structs flattened as
      alternating key/value elements, in their own order)
    - unit enum variants -> SimpleString(variant name)
    - payload variants -> Array [BulkString(variant name), payload...]
    """
    def __init__(self, config: CodecConfig | None = None) -> None:
        self._config = config or DEFAULT_CONFIG
        self._result: RespValue | None = None
        self._depth = 0

    @property
    def config(self) -> CodecConfig:
        return self._config

    def run(self, obj: Any) -> RespValue:
        try:
            return self.child(obj)
        except RecursionError as exc:
            raise BridgeError(
                f"object nesting is too deep to serialize under max_depth={self._config.max_depth}"
            ) from exc

    def child(self, obj: Any) -> RespValue:
        """Serialize a nested object with a fresh slot, keeping this one intact."""
        if self._depth > self._config.max_depth:
            raise BridgeError(
                f"object nesting exceeds the maximum depth of {self._config.max_depth}"
            )

        saved = self._result
        self._result = None
        self._depth += 1
        try:
            serialize_any(obj, self)
            if self._result is None:
                raise BridgeError(
                    f"adapter for {type(obj).__name__} did not produce a value"
                )
            return self._result
        finally:
            self._depth -= 1
            self._result = saved

    def emit(self, value: RespValue) -> None:
        if self._result is not None:
            raise BridgeError("an adapter produced more than one value")
        self._result = value

    def serialize_bool(self, value: bool) -> None:
        self.emit(Integer(1 if value else 0))

    def serialize_int(self, value: int) -> None:
        self.emit(Integer(int(value)))

    def serialize_float(self, value: float) -> None:
        if math.isnan(value) or math.isinf(value):
            raise UnsupportedFloat(f"{value} has no integer representation")
        if not value.is_integer() and self._config.float_policy is FloatPolicy.reject:
            raise UnsupportedFloat(
                f"{value} is not integral and the float policy rejects truncation"
            )
        number = math.trunc(value)
        if not INT64_MIN <= number <= INT64_MAX:
            raise UnsupportedFloat(f"{value} does not fit in a signed 64-bit integer")
        self.emit(Integer(number))

    def serialize_str(self, value: str, simple: bool = False) -> None:
        if simple:
            self.emit(SimpleString(value))
        else:
            try:
                self.emit(BulkString(value.encode(TEXT_ENCODING)))
            except UnicodeEncodeError as exc:
                raise InvalidPayload(f"text is not valid unicode: {exc}") from exc

    def serialize_bytes(self, value: bytes) -> None:
        self.emit(BulkString(bytes(value)))

    def serialize_none(self) -> None:
        self.emit(NULL_BULK)

    def serialize_value(self, value: RespValue) -> None:
        self.emit(value)

    def serialize_unit_variant(self, enum_name: str, variant: str) -> None:
        self.emit(SimpleString(variant))

    def begin_seq(self, length: int) -> SeqBuilder:
        return _Seq(self, "sequence", length)

    def begin_map(self, length: int) -> MapBuilder:
        return _Map(self, "map", length)

    def begin_struct(self, name: str, length: int) -> StructBuilder:
        return _Struct(self, f"struct {name}", length)

    def begin_variant(self, enum_name: str, variant: str) -> VariantBuilder:
        return _Variant(self, variant)


SerializeFn = Callable[[Any, Serializer], None]


@functools.singledispatch
def serialize_any(obj: Any, serializer: Serializer) -> None:
    """
    Describe `obj` to `serializer`.

    Types are looked up in this order: protocol values pass through,
    objects with a `__resp_serialize__(serializer)` method describe
    themselves, then the adapters registered with `register_serializer`
    (builtins are registered below), and finally the adapters generated
    for dataclasses and pydantic models.
    """
    hook = getattr(type(obj), "__resp_serialize__", None)
    if hook is not None:
        hook(obj, serializer)
        return

    # imported here: shapes builds on this module
    from respwire.core.bridge.shapes import struct_adapter

    adapter = struct_adapter(type(obj))
    if adapter is None:
        raise UnsupportedType(f"no serializer for type {type(obj).__name__}")
    adapter.serialize(obj, serializer)


def register_serializer(cls: type, func: SerializeFn | None = None):
    """
    Register an adapter for `cls`. Usable as a decorator:

        @register_serializer(Point)
        def _(point, serializer): ...
    """
    if func is None:
        return lambda f: serialize_any.register(cls, f)
    return serialize_any.register(cls, func)


for _resp_type in RESP_TYPES:
    serialize_any.register(_resp_type, lambda obj, s: s.serialize_value(obj))


@serialize_any.register(type(None))
def _(obj: None, serializer: Serializer) -> None:
    serializer.serialize_none()


@serialize_any.register
def _(obj: bool, serializer: Serializer) -> None:
    serializer.serialize_bool(obj)


@serialize_any.register
def _(obj: int, serializer: Serializer) -> None:
    serializer.serialize_int(obj)


@serialize_any.register
def _(obj: float, serializer: Serializer) -> None:
    serializer.serialize_float(obj)


@serialize_any.register
def _(obj: str, serializer: Serializer) -> None:
    serializer.serialize_str(obj)


@serialize_any.register(bytes)
@serialize_any.register(bytearray)
@serialize_any.register(memoryview)
def _(obj: bytes, serializer: Serializer) -> None:
    serializer.serialize_bytes(bytes(obj))


@serialize_any.register(list)
@serialize_any.register(tuple)
@serialize_any.register(set)
@serialize_any.register(frozenset)
def _(obj: list, serializer: Serializer) -> None:
    seq = serializer.begin_seq(len(obj))
    for item in obj:
        seq.element(item)
    seq.end()


@serialize_any.register
def _(obj: dict, serializer: Serializer) -> None:
    entries = serializer.begin_map(len(obj))
    for key, value in obj.items():
        entries.entry(key, value)
    entries.end()


# IntEnum and StrEnum members would otherwise dispatch as int and str.
@serialize_any.register(enum.Enum)
@serialize_any.register(enum.IntEnum)
@serialize_any.register(enum.StrEnum)
def _(obj: enum.Enum, serializer: Serializer) -> None:
    serializer.serialize_unit_variant(type(obj).__name__, obj.name)
