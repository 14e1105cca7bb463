"""
Intermediate value model for generated resource attributes.

Mappers build attribute trees out of these values instead of text, so no
mapper depends on the syntax that will eventually be written. A serializer
only has to match on the variants:

    Literal      a scalar: string, number, bool, or null
    ListValue    an ordered list of values (also used for repeated blocks)
    Block        named attributes; ``nested=True`` for a nested block such
                 as ``metadata_options { ... }``, ``nested=False`` for a
                 map-valued attribute such as ``tags = { ... }``
    Reference    address of another generated resource or variable
    Expression   opaque interpolation text passed through verbatim

All values are immutable once constructed.

Usage:
    from terramap.values import block, literal, reference, to_value

    attrs = {
        "ami": literal("ami-0abc"),
        "subnet_id": reference("aws_subnet.app.id"),
        "metadata_options": block({"http_tokens": "required"}),
        "tags": to_value({"Team": "platform"}),
    }
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TypeAlias

Scalar: TypeAlias = str | int | float | bool | None


@dataclass(frozen=True)
class Literal:
    """A scalar attribute value."""

    value: Scalar


@dataclass(frozen=True)
class ListValue:
    """An ordered list of values."""

    items: tuple["Value", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["Value"]:
        return iter(self.items)


@dataclass(frozen=True)
class Block:
    """
    A set of named attributes.

    Attributes:
        attributes: Read-only mapping of attribute name to value
        nested: True for a nested configuration block, False for a
            map-valued attribute
    """

    attributes: Mapping[str, "Value"] = field(default_factory=dict)
    nested: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def __getitem__(self, key: str) -> "Value":
        return self.attributes[key]

    def __contains__(self, key: object) -> bool:
        return key in self.attributes

    def __len__(self) -> int:
        return len(self.attributes)


@dataclass(frozen=True)
class Reference:
    """Address of a generated resource attribute or variable (``var.x``)."""

    address: str


@dataclass(frozen=True)
class Expression:
    """Opaque expression text, emitted verbatim by the serializer."""

    raw: str


Value: TypeAlias = Literal | ListValue | Block | Reference | Expression

_VALUE_TYPES = (Literal, ListValue, Block, Reference, Expression)


def literal(value: Scalar) -> Literal:
    """Build a scalar value."""
    return Literal(value)


def reference(address: str) -> Reference:
    """Build a reference to ``address`` (for example ``aws_vpc.main.id``)."""
    return Reference(address)


def expression(raw: str) -> Expression:
    """Build an opaque expression."""
    return Expression(raw)


def list_value(items: Iterable[object]) -> ListValue:
    """Build a list, converting each item with ``to_value``."""
    return ListValue(tuple(to_value(item) for item in items))


def block(attributes: Mapping[str, object]) -> Block:
    """
    Build a nested configuration block.

    Attribute values are converted with ``to_value``; attributes whose value
    is None are dropped.
    """
    return Block(_convert_attributes(attributes), nested=True)


def mapping(attributes: Mapping[str, object]) -> Block:
    """Build a map-valued attribute (``name = { ... }``)."""
    return Block(_convert_attributes(attributes), nested=False)


def to_value(obj: object) -> Value:
    """
    Convert native Python data to a Value.

    Scalars become Literal, lists and tuples become ListValue, dicts become
    a map-valued Block, and existing values are returned unchanged.

    Raises:
        TypeError: If obj has no value representation
    """
    if isinstance(obj, _VALUE_TYPES):
        return obj
    if obj is None or isinstance(obj, (str, bool, int, float)):
        return Literal(obj)
    if isinstance(obj, (list, tuple)):
        return list_value(obj)
    if isinstance(obj, Mapping):
        return Block({str(k): to_value(v) for k, v in obj.items()}, nested=False)
    raise TypeError(f"Cannot convert {type(obj).__name__} to a Terraform value")


def to_native(value: Value) -> object:
    """
    Convert a Value back to plain Python data.

    References and expressions become ``{"$ref": ...}`` and ``{"$expr": ...}``
    markers. Useful for comparisons and for JSON dumps of a result.
    """
    if isinstance(value, Literal):
        return value.value
    if isinstance(value, ListValue):
        return [to_native(item) for item in value.items]
    if isinstance(value, Block):
        return {key: to_native(item) for key, item in value.attributes.items()}
    if isinstance(value, Reference):
        return {"$ref": value.address}
    return {"$expr": value.raw}


def _convert_attributes(attributes: Mapping[str, object]) -> dict[str, Value]:
    return {key: to_value(item) for key, item in attributes.items() if item is not None}
