"""
Adapters for struct-like classes: dataclasses and pydantic models.

An adapter is generated once per class from its declared fields and
cached; serializing or deserializing an instance afterwards only walks
that field list. Field order is declaration order, which is also the
order of the field entries on the wire.

Structs encode as a flat Array of alternating field name and field value:

    Point(x=1, y=2)  ->  *4 $1 x :1 $1 y :2

A struct class that also derives from `Variant` is one payload-carrying
variant of a tagged union and is wrapped with its variant name:

    Circle(radius=3)  ->  *2 $6 Circle *2 $6 radius :3
"""
import dataclasses
import functools
import typing
from dataclasses import dataclass
from typing import Any

import pydantic

from respwire.core.errors import TypeMismatch


class Variant:
    """
    Marks a dataclass or pydantic model as a variant of a tagged union.

    Declare the union as a common base class, or as a plain ``A | B``
    annotation; deserializing into either picks the concrete class from
    the variant name carried on the wire.

        class Shape(Variant): ...

        @dataclass
        class Circle(Shape):
            radius: int
    """
    __slots__ = ()

    @classmethod
    def variant_name(cls) -> str:
        return cls.__name__


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: Any


class _StructBody:
    """The fields of a variant, serialized without the variant wrapper."""
    __slots__ = ("adapter", "obj")

    def __init__(self, adapter: "StructAdapter", obj: Any) -> None:
        self.adapter = adapter
        self.obj = obj

    def __resp_serialize__(self, serializer) -> None:
        self.adapter.serialize_fields(self.obj, serializer)


class StructAdapter:
    def __init__(self, cls: type, fields: tuple[FieldSpec, ...]) -> None:
        self.cls = cls
        self.fields = fields
        self.field_names = tuple(f.name for f in fields)
        self.is_variant = issubclass(cls, Variant)
        self._is_pydantic = issubclass(cls, pydantic.BaseModel)

    @property
    def name(self) -> str:
        return self.cls.__name__

    def serialize(self, obj: Any, serializer) -> None:
        if self.is_variant:
            variant = serializer.begin_variant(_union_name(self.cls), self.cls.variant_name())
            variant.payload(_StructBody(self, obj))
            variant.end()
        else:
            self.serialize_fields(obj, serializer)

    def serialize_fields(self, obj: Any, serializer) -> None:
        struct = serializer.begin_struct(self.name, len(self.fields))
        for spec in self.fields:
            struct.field(spec.name, getattr(obj, spec.name))
        struct.end()

    def deserialize(self, de) -> Any:
        if not self.is_variant:
            return self.deserialize_fields(de)

        name, payload = de.deserialize_variant()
        if name != self.cls.variant_name():
            raise TypeMismatch(
                f"variant {self.cls.variant_name()}", f"variant {name}", de.path
            )
        return self.deserialize_fields(_single_payload(de, name, payload))

    def deserialize_fields(self, de) -> Any:
        # imported here: deserializer builds on this module
        from respwire.core.bridge.deserializer import deserialize_any

        entries = de.deserialize_struct(self.name, self.field_names)
        kwargs = {
            spec.name: deserialize_any(entries[spec.name], spec.type)
            for spec in self.fields
        }
        if not self._is_pydantic:
            return self.cls(**kwargs)

        try:
            return self.cls(**kwargs)
        except pydantic.ValidationError as exc:
            raise TypeMismatch(
                f"valid {self.name}", "invalid field values", de.path, str(exc)
            ) from exc


def _single_payload(de, name: str, payload: list) -> Any:
    if len(payload) != 1:
        raise TypeMismatch(
            "exactly one payload element",
            f"{len(payload)} elements",
            de.path,
            f"variant {name}",
        )
    return payload[0]


def _union_name(cls: type) -> str:
    for base in cls.__mro__[1:]:
        if base is not Variant and issubclass(base, Variant):
            return base.__name__
    return cls.__name__


@functools.cache
def struct_adapter(cls: type) -> StructAdapter | None:
    """Return the adapter for a dataclass or pydantic model class, else None."""
    if not isinstance(cls, type):
        return None

    if dataclasses.is_dataclass(cls):
        hints = typing.get_type_hints(cls)
        fields = tuple(
            FieldSpec(f.name, hints.get(f.name, Any))
            for f in dataclasses.fields(cls)
            if f.init
        )
        return StructAdapter(cls, fields)

    if issubclass(cls, pydantic.BaseModel):
        fields = tuple(
            FieldSpec(name, info.annotation if info.annotation is not None else Any)
            for name, info in cls.model_fields.items()
        )
        return StructAdapter(cls, fields)

    return None


def variant_candidates(target: type) -> dict[str, StructAdapter]:
    """
    Concrete variants a value of type `target` may be: `target` itself
    when it is a struct, and all of its struct subclasses.
    """
    found: dict[str, StructAdapter] = {}
    pending = [target]
    while pending:
        cls = pending.pop()
        adapter = struct_adapter(cls)
        if adapter is not None and adapter.is_variant:
            found.setdefault(cls.variant_name(), adapter)
        pending.extend(cls.__subclasses__())
    return found


def deserialize_variant_of(de, candidates: dict[str, StructAdapter]) -> Any:
    name, payload = de.deserialize_variant()
    adapter = candidates.get(name)
    if adapter is None:
        expected = " | ".join(sorted(candidates)) or "a known variant"
        raise TypeMismatch(expected, f"variant {name}", de.path)
    return adapter.deserialize_fields(_single_payload(de, name, payload))
