"""Encode structured values into ``application/x-www-form-urlencoded`` text.

Records take part in encoding in one of two ways:

* they define ``encode_form(self, container)`` and push their fields into
  the given ``KeyedContainer`` explicitly, or
* they are dataclasses or mappings, whose fields are walked in declaration
  (or iteration) order.

Sequences (lists and tuples) are collapsed according to the configured
``ArrayEncoding``; datetimes are rendered with the configured
``DateEncodingStrategy``. ``None`` values are skipped entirely.
"""

import dataclasses
import datetime
import decimal
import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from questdb_client.coding.form_serializer import FormSerializer
from questdb_client.coding.value_tree import STRUCTURAL_CHARACTERS, QueryFragment, ValueTree
from questdb_client.errors import ConfigurationError, EncodingFailure

logger = logging.getLogger(__name__)

PathSegment = Union[str, int]

# Synthetic child key used by bracket encoding; serializes as "key[]".
BRACKET_KEY = ""


class ArrayEncodingKind(enum.Enum):
    BRACKET = "bracket"
    SEPARATOR = "separator"
    VALUES = "values"


@dataclass(frozen=True)
class ArrayEncoding:
    """How sequences are rendered.

    ``bracket()``       ``a[]=1&a[]=2``
    ``separator(",")``  ``a=1,2``
    ``values()``        ``a=1&a=2``
    """

    kind: ArrayEncodingKind
    separator_char: Optional[str] = None

    def __post_init__(self):
        if self.kind is ArrayEncodingKind.SEPARATOR:
            if self.separator_char is None or len(self.separator_char) != 1:
                raise ConfigurationError(
                    f"Array separator must be a single character, got {self.separator_char!r}"
                )
            if self.separator_char in STRUCTURAL_CHARACTERS:
                raise ConfigurationError(
                    f"Array separator {self.separator_char!r} would break the query string; "
                    f"avoid any of {STRUCTURAL_CHARACTERS!r}"
                )

    @classmethod
    def bracket(cls) -> "ArrayEncoding":
        return cls(ArrayEncodingKind.BRACKET)

    @classmethod
    def separator(cls, char: str = ",") -> "ArrayEncoding":
        return cls(ArrayEncodingKind.SEPARATOR, char)

    @classmethod
    def values(cls) -> "ArrayEncoding":
        return cls(ArrayEncodingKind.VALUES)

    @classmethod
    def from_name(cls, name: str, separator_char: str = ",") -> "ArrayEncoding":
        try:
            kind = ArrayEncodingKind(name)
        except ValueError:
            supported = ", ".join(k.value for k in ArrayEncodingKind)
            raise ConfigurationError(f"Unknown array encoding '{name}', expected one of: {supported}")
        if kind is ArrayEncodingKind.SEPARATOR:
            return cls.separator(separator_char)
        return cls(kind)


class DateEncodingKind(enum.Enum):
    SECONDS_SINCE_1970 = "seconds_since_1970"
    ISO8601 = "iso8601"
    CUSTOM = "custom"


DateCallback = Callable[[datetime.datetime, "EncoderContext"], None]


@dataclass(frozen=True)
class DateEncodingStrategy:
    kind: DateEncodingKind
    callback: Optional[DateCallback] = None

    def __post_init__(self):
        if self.kind is DateEncodingKind.CUSTOM and self.callback is None:
            raise ConfigurationError("Custom date encoding requires a callback")

    @classmethod
    def seconds_since_1970(cls) -> "DateEncodingStrategy":
        return cls(DateEncodingKind.SECONDS_SINCE_1970)

    @classmethod
    def iso8601(cls) -> "DateEncodingStrategy":
        return cls(DateEncodingKind.ISO8601)

    @classmethod
    def custom(cls, callback: DateCallback) -> "DateEncodingStrategy":
        return cls(DateEncodingKind.CUSTOM, callback)

    @classmethod
    def from_name(cls, name: str) -> "DateEncodingStrategy":
        if name == DateEncodingKind.SECONDS_SINCE_1970.value:
            return cls.seconds_since_1970()
        if name == DateEncodingKind.ISO8601.value:
            return cls.iso8601()
        raise ConfigurationError(
            f"Unknown date encoding '{name}', expected 'seconds_since_1970' or 'iso8601'"
        )


@dataclass(frozen=True)
class EncoderConfiguration:
    array_encoding: ArrayEncoding = field(default_factory=ArrayEncoding.bracket)
    date_encoding: DateEncodingStrategy = field(default_factory=DateEncodingStrategy.seconds_since_1970)


@runtime_checkable
class FormEncodable(Protocol):
    """Records that push their own fields into a keyed container."""

    def encode_form(self, container: "KeyedContainer") -> None:
        ...


def _utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def scalar_fragment(value: Any) -> Optional[QueryFragment]:
    """Return the fragment for a text-convertible scalar, or None for aggregates."""
    if isinstance(value, bool):
        return QueryFragment.raw("true" if value else "false")
    if isinstance(value, enum.Enum):
        return scalar_fragment(value.value)
    if isinstance(value, str):
        return QueryFragment.raw(value)
    if isinstance(value, int):
        return QueryFragment.raw(str(value))
    if isinstance(value, float):
        return QueryFragment.raw(repr(value))
    if isinstance(value, decimal.Decimal):
        return QueryFragment.raw(str(value))
    if isinstance(value, uuid.UUID):
        return QueryFragment.raw(str(value))
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return QueryFragment.raw(value.isoformat())
    return None


class KeyedContainer:
    """Collects named fields of one record into a ``ValueTree``."""

    def __init__(self, path: Sequence[PathSegment], encoder: "_TreeEncoder"):
        self.path: List[PathSegment] = list(path)
        self.tree = ValueTree()
        self._encoder = encoder

    def encode(self, key: str, value: Any) -> None:
        if value is None:
            return
        if not isinstance(key, str):
            raise EncodingFailure(key, self.path, "field keys must be strings")
        self.tree.children[key] = self._encoder.encode(value, self.path + [key])

    def nested_container(self, key: str) -> "KeyedContainer":
        container = KeyedContainer(self.path + [key], self._encoder)
        self.tree.children[key] = container.tree
        return container


class EncoderContext:
    """Fresh sub-encoder handed to custom date callbacks."""

    def __init__(self, path: Sequence[PathSegment], encoder: "_TreeEncoder"):
        self.path: List[PathSegment] = list(path)
        self.tree = ValueTree()
        self._encoder = encoder

    def encode(self, value: Any) -> None:
        """Encode ``value`` as the single value at this position."""
        if value is None:
            return
        if isinstance(value, datetime.datetime):
            # Recursing through the date strategy here would loop forever.
            self.tree = ValueTree(values=[QueryFragment.raw(repr(_utc(value).timestamp()))])
            return
        self.tree = self._encoder.encode(value, self.path)

    def container(self) -> KeyedContainer:
        container = KeyedContainer(self.path, self._encoder)
        self.tree = container.tree
        return container


class _TreeEncoder:

    def __init__(self, configuration: EncoderConfiguration):
        self.configuration = configuration

    def encode(self, value: Any, path: List[PathSegment]) -> ValueTree:
        if value is None:
            return ValueTree()

        if isinstance(value, datetime.datetime):
            return self._encode_date(value, path)

        fragment = scalar_fragment(value)
        if fragment is not None:
            # Surface unencodable text now, with the path that produced it.
            fragment.as_url_encoded(path)
            return ValueTree(values=[fragment])

        if isinstance(value, FormEncodable) and not isinstance(value, type):
            container = KeyedContainer(path, self)
            value.encode_form(container)
            return container.tree

        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            container = KeyedContainer(path, self)
            for f in dataclasses.fields(value):
                container.encode(f.name, getattr(value, f.name))
            return container.tree

        if isinstance(value, Mapping):
            container = KeyedContainer(path, self)
            for key, item in value.items():
                container.encode(key, item)
            return container.tree

        if isinstance(value, (list, tuple)):
            return self._encode_sequence(value, path)

        raise EncodingFailure(value, path, f"unsupported type {type(value).__name__}")

    def _encode_date(self, value: datetime.datetime, path: List[PathSegment]) -> ValueTree:
        strategy = self.configuration.date_encoding
        if strategy.kind is DateEncodingKind.SECONDS_SINCE_1970:
            return ValueTree(values=[QueryFragment.raw(repr(_utc(value).timestamp()))])
        if strategy.kind is DateEncodingKind.ISO8601:
            text = _utc(value).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")
            return ValueTree(values=[QueryFragment.raw(text)])
        context = EncoderContext(path, self)
        strategy.callback(value, context)
        return context.tree

    def _encode_sequence(self, items: Sequence[Any], path: List[PathSegment]) -> ValueTree:
        array_encoding = self.configuration.array_encoding
        tree = ValueTree()

        def collect(fragments: List[QueryFragment]) -> None:
            if array_encoding.kind is ArrayEncodingKind.BRACKET:
                tree.child(BRACKET_KEY).values.extend(fragments)
            else:
                tree.values.extend(fragments)

        for index, item in enumerate(items):
            if item is None:
                continue
            fragment = None if isinstance(item, datetime.datetime) else scalar_fragment(item)
            if fragment is not None:
                fragment.as_url_encoded(path + [index])
                collect([fragment])
                continue
            child = self.encode(item, path + [index])
            if child.has_only_values:
                collect(child.values)
            else:
                tree.children[str(index)] = child

        if array_encoding.kind is ArrayEncodingKind.SEPARATOR and (tree.values or not tree.children):
            joined = array_encoding.separator_char.join(
                value.as_url_encoded(path) for value in tree.values
            )
            tree.values = [QueryFragment.url_encoded(joined)]
        return tree


class FormEncoder:
    """Turns structured values into query strings.

    The configuration is fixed for the lifetime of the encoder; each call
    builds and discards its own tree, so one encoder may be shared.
    """

    def __init__(self, configuration: Optional[EncoderConfiguration] = None):
        self.configuration = configuration or EncoderConfiguration()
        self._serializer = FormSerializer()

    def encode_tree(self, value: Any) -> ValueTree:
        return _TreeEncoder(self.configuration).encode(value, [])

    def encode(self, value: Any) -> str:
        tree = self.encode_tree(value)
        query = self._serializer.serialize(tree)
        logger.debug(f"Encoded {type(value).__name__} into {len(query)} query characters")
        return query
