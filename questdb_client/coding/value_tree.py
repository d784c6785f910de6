"""Intermediate tree built while encoding a value into a query string.

A ``ValueTree`` holds the scalar fragments found at one key path together
with the named sub-trees below it. The serializer later flattens it into
``key[child]=value`` pairs.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote, unquote

from questdb_client.errors import DecodingFailure, EncodingFailure

# Query-safe characters minus the form-structural set.
STRUCTURAL_CHARACTERS = "?&=[];+"
# Alphanumerics and "_.-~" are always kept by urllib.
SAFE_CHARACTERS = "!$'()*,-./:@_~"


def url_encode(text: str, path: Optional[Sequence[Any]] = None) -> str:
    """Percent-encode ``text`` for use as a form key or value."""
    try:
        return quote(text, safe=SAFE_CHARACTERS, encoding="utf-8", errors="strict")
    except UnicodeEncodeError as e:
        raise EncodingFailure(text, path or [], f"unable to add percent encoding: {e.reason}") from e


def url_decode(text: str) -> str:
    try:
        return unquote(text, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as e:
        raise DecodingFailure([], f"unable to remove percent encoding for {text!r}") from e


class QueryFragment:
    """A single scalar, either raw text or text that is already percent-encoded.

    Equality and hashing go through the decoded text, so ``a%20b`` and
    ``a b`` are the same fragment.
    """

    __slots__ = ("_text", "_encoded")

    def __init__(self, text: str, encoded: bool = False):
        self._text = text
        self._encoded = encoded

    @classmethod
    def raw(cls, text: str) -> "QueryFragment":
        return cls(text, encoded=False)

    @classmethod
    def url_encoded(cls, text: str) -> "QueryFragment":
        return cls(text, encoded=True)

    @property
    def is_encoded(self) -> bool:
        return self._encoded

    def as_url_encoded(self, path: Optional[Sequence[Any]] = None) -> str:
        if self._encoded:
            return self._text
        return url_encode(self._text, path)

    def as_url_decoded(self) -> str:
        if self._encoded:
            return url_decode(self._text)
        return self._text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryFragment):
            return NotImplemented
        try:
            return self.as_url_decoded() == other.as_url_decoded()
        except DecodingFailure:
            return False

    def __hash__(self) -> int:
        try:
            return hash(self.as_url_decoded())
        except DecodingFailure:
            return hash(self._text)

    def __repr__(self) -> str:
        state = "encoded" if self._encoded else "raw"
        return f"QueryFragment({self._text!r}, {state})"


@dataclass
class ValueTree:
    """Scalar fragments at one key path plus named child trees."""

    values: List[QueryFragment] = field(default_factory=list)
    children: Dict[str, "ValueTree"] = field(default_factory=dict)

    @classmethod
    def of(cls, *texts: str) -> "ValueTree":
        return cls(values=[QueryFragment.raw(text) for text in texts])

    @property
    def has_only_values(self) -> bool:
        return not self.children

    @property
    def is_empty(self) -> bool:
        return not self.values and not self.children

    @property
    def all_child_keys_are_sequential_integers(self) -> bool:
        return all(str(i) in self.children for i in range(len(self.children)))

    def child(self, key: str) -> "ValueTree":
        """Return the child at ``key``, creating it if needed."""
        if key not in self.children:
            self.children[key] = ValueTree()
        return self.children[key]

    def set_value(self, value: QueryFragment, path: Sequence[str]) -> None:
        """Append ``value`` at the node reached by walking ``path``."""
        node = self
        for key in path:
            node = node.child(key)
        node.values.append(value)
