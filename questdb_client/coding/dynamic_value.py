"""Type-erased JSON values.

Query results arrive as rows of arbitrarily typed JSON cells. Each cell is
decoded into a ``DynamicValue``: a closed set of kinds plus the wrapped
native value. The kind is decided by probing in a fixed order (null, bool,
signed integer, unsigned integer, double, string, sequence, mapping), so a
number that is losslessly an integer is always tagged as one.
"""

import enum
import json
import logging
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from questdb_client.errors import DecodingFailure, InvalidJSON

logger = logging.getLogger(__name__)

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1
UINT64_MAX = 2 ** 64 - 1


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Marks the absence of a value, as opposed to an explicit null.
MISSING = _Missing()


class ValueKind(enum.Enum):
    NULL = "null"
    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    DOUBLE = "double"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    EMPTY = "empty"


class DynamicValue:
    """Immutable tagged value. Values of different kinds never compare equal."""

    __slots__ = ("_kind", "_value")

    def __init__(self, kind: ValueKind, value: Any = None):
        object.__setattr__(self, "_kind", kind)
        object.__setattr__(self, "_value", value)

    def __setattr__(self, name, value):
        raise AttributeError("DynamicValue is immutable")

    @property
    def kind(self) -> ValueKind:
        return self._kind

    @property
    def value(self) -> Any:
        return self._value

    @classmethod
    def null(cls) -> "DynamicValue":
        return cls(ValueKind.NULL)

    @classmethod
    def empty(cls) -> "DynamicValue":
        return cls(ValueKind.EMPTY)

    @classmethod
    def boolean(cls, value: bool) -> "DynamicValue":
        return cls(ValueKind.BOOL, bool(value))

    @classmethod
    def integer(cls, value: int) -> "DynamicValue":
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"{value} is outside the signed 64-bit range")
        return cls(ValueKind.INT, int(value))

    @classmethod
    def unsigned(cls, value: int) -> "DynamicValue":
        if not 0 <= value <= UINT64_MAX:
            raise ValueError(f"{value} is outside the unsigned 64-bit range")
        return cls(ValueKind.UINT, int(value))

    @classmethod
    def double(cls, value: float) -> "DynamicValue":
        return cls(ValueKind.DOUBLE, float(value))

    @classmethod
    def string(cls, value: str) -> "DynamicValue":
        return cls(ValueKind.STRING, value)

    @classmethod
    def sequence(cls, items: Iterable["DynamicValue"]) -> "DynamicValue":
        return cls(ValueKind.SEQUENCE, tuple(items))

    @classmethod
    def mapping(cls, items: Mapping[str, "DynamicValue"]) -> "DynamicValue":
        return cls(ValueKind.MAPPING, MappingProxyType(dict(items)))

    @classmethod
    def from_native(cls, value: Any = MISSING) -> "DynamicValue":
        """Wrap a native value; an absent value becomes the EMPTY kind, not NULL."""
        if value is MISSING:
            return cls.empty()
        return decode_dynamic(value)

    def to_native(self) -> Any:
        """Unwrap recursively into plain Python values."""
        kind = self._kind
        if kind is ValueKind.NULL or kind is ValueKind.EMPTY:
            return None
        if kind in (ValueKind.BOOL, ValueKind.INT, ValueKind.UINT, ValueKind.DOUBLE, ValueKind.STRING):
            return self._value
        if kind is ValueKind.SEQUENCE:
            return [item.to_native() for item in self._value]
        if kind is ValueKind.MAPPING:
            return {key: item.to_native() for key, item in self._value.items()}
        raise AssertionError(f"Unhandled value kind {kind}")

    @property
    def is_null(self) -> bool:
        return self._kind is ValueKind.NULL

    def _key(self) -> Tuple[ValueKind, Any]:
        if self._kind is ValueKind.MAPPING:
            return self._kind, frozenset(self._value.items())
        return self._kind, self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DynamicValue):
            return NotImplemented
        if self._kind is not other._kind:
            return False
        if self._kind is ValueKind.MAPPING:
            return dict(self._value) == dict(other._value)
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        kind = self._kind
        if kind is ValueKind.NULL:
            return "null"
        if kind is ValueKind.EMPTY:
            return "empty"
        if kind is ValueKind.BOOL:
            return "true" if self._value else "false"
        if kind is ValueKind.SEQUENCE:
            return "[" + ", ".join(str(item) for item in self._value) + "]"
        if kind is ValueKind.MAPPING:
            return "{" + ", ".join(f"{key}: {item}" for key, item in self._value.items()) + "}"
        return str(self._value)

    def __repr__(self) -> str:
        if self._kind in (ValueKind.NULL, ValueKind.EMPTY):
            return f"DynamicValue.{self._kind.name.lower()}()"
        if self._kind is ValueKind.MAPPING:
            return f"DynamicValue.mapping({dict(self._value)!r})"
        return f"DynamicValue.{self._kind.name.lower()}({self._value!r})"


def _decode_number(value: Any, path: List[Any]) -> DynamicValue:
    if isinstance(value, int):
        if INT64_MIN <= value <= INT64_MAX:
            return DynamicValue(ValueKind.INT, value)
        if 0 <= value <= UINT64_MAX:
            return DynamicValue(ValueKind.UINT, value)
        try:
            as_float = float(value)
        except OverflowError:
            raise DecodingFailure(path, f"integer {value} does not fit a double")
        return DynamicValue(ValueKind.DOUBLE, as_float)

    if value.is_integer():
        as_int = int(value)
        if INT64_MIN <= as_int <= INT64_MAX:
            return DynamicValue(ValueKind.INT, as_int)
        if 0 <= as_int <= UINT64_MAX:
            return DynamicValue(ValueKind.UINT, as_int)
    return DynamicValue(ValueKind.DOUBLE, value)


def decode_dynamic(value: Any, path: Sequence[Any] = ()) -> DynamicValue:
    """Decode a parsed JSON value into a DynamicValue, whatever its shape.

    Raises DecodingFailure naming the path of the first value that matches
    none of the supported shapes.
    """
    path = list(path)
    if isinstance(value, DynamicValue):
        return value
    if value is None:
        return DynamicValue.null()
    if isinstance(value, bool):
        return DynamicValue(ValueKind.BOOL, value)
    if isinstance(value, (int, float)):
        return _decode_number(value, path)
    if isinstance(value, str):
        return DynamicValue(ValueKind.STRING, value)
    if isinstance(value, (list, tuple)):
        return DynamicValue.sequence(decode_dynamic(item, path + [index]) for index, item in enumerate(value))
    if isinstance(value, Mapping):
        decoded = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise DecodingFailure(path, f"mapping key {key!r} is not a string")
            decoded[key] = decode_dynamic(item, path + [key])
        return DynamicValue.mapping(decoded)
    raise DecodingFailure(path, f"value of type {type(value).__name__} cannot be decoded")


def parse_dynamic(text: Any) -> DynamicValue:
    """Parse JSON text (str or bytes) and decode it into a DynamicValue."""
    try:
        document = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidJSON(f"Response is not valid JSON: {e}") from e
    logger.debug(f"Parsed JSON document of {len(text)} characters")
    return decode_dynamic(document)
