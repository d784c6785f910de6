"""Tests for type-erased JSON values."""

from __future__ import annotations

import json

import pytest

from questdb_client.coding.dynamic_value import (
    MISSING,
    DynamicValue,
    ValueKind,
    decode_dynamic,
    parse_dynamic,
)
from questdb_client.errors import DecodingFailure, InvalidJSON


class TestProbing:
    def test_scalars(self):
        assert decode_dynamic(None).kind is ValueKind.NULL
        assert decode_dynamic(True).kind is ValueKind.BOOL
        assert decode_dynamic(-3).kind is ValueKind.INT
        assert decode_dynamic("s").kind is ValueKind.STRING

    def test_integer_before_double(self):
        """42 tags as an integer, 42.5 as a double."""
        assert parse_dynamic("42") == DynamicValue.integer(42)
        assert parse_dynamic("42.5") == DynamicValue.double(42.5)

    def test_integral_float_is_integer(self):
        assert parse_dynamic("1.0").kind is ValueKind.INT

    def test_unsigned_range(self):
        assert decode_dynamic(2 ** 63 - 1).kind is ValueKind.INT
        assert decode_dynamic(2 ** 63).kind is ValueKind.UINT
        assert decode_dynamic(2 ** 64 - 1).kind is ValueKind.UINT

    def test_beyond_unsigned_range_is_double(self):
        value = decode_dynamic(2 ** 64)
        assert value.kind is ValueKind.DOUBLE
        assert value.value == float(2 ** 64)

    def test_huge_integer_fails(self):
        with pytest.raises(DecodingFailure):
            decode_dynamic(10 ** 400)

    def test_nan_is_double(self):
        assert parse_dynamic("NaN").kind is ValueKind.DOUBLE

    def test_sequence_and_mapping(self):
        value = parse_dynamic('{"a": [1, "x", null], "b": {"c": true}}')
        assert value.kind is ValueKind.MAPPING
        assert value.value["a"] == DynamicValue.sequence([
            DynamicValue.integer(1), DynamicValue.string("x"), DynamicValue.null(),
        ])
        assert value.value["b"].value["c"] == DynamicValue.boolean(True)

    def test_unsupported_value_names_path(self):
        with pytest.raises(DecodingFailure) as exc_info:
            decode_dynamic({"a": [1, object()]})
        assert exc_info.value.path == ["a", 1]

    def test_non_string_key(self):
        with pytest.raises(DecodingFailure) as exc_info:
            decode_dynamic({"a": {1: "x"}})
        assert exc_info.value.path == ["a"]

    def test_invalid_json(self):
        with pytest.raises(InvalidJSON):
            parse_dynamic("{not json")

    def test_already_decoded_value_passes_through(self):
        value = DynamicValue.string("x")
        assert decode_dynamic(value) is value


class TestEquality:
    def test_no_cross_kind_equality(self):
        """true, 1 and "1" are three different values."""
        values = [parse_dynamic("true"), parse_dynamic("1"), parse_dynamic('"1"')]
        for i, left in enumerate(values):
            for j, right in enumerate(values):
                assert (left == right) == (i == j)

    def test_int_and_double_differ(self):
        assert DynamicValue.integer(1) != DynamicValue.double(1.0)
        assert DynamicValue.integer(5) != DynamicValue.unsigned(5)

    def test_null_and_empty_differ(self):
        assert DynamicValue.null() != DynamicValue.empty()

    def test_mapping_equality_ignores_order(self):
        assert parse_dynamic('{"a": 1, "b": 2}') == parse_dynamic('{"b": 2, "a": 1}')
        assert parse_dynamic('{"a": 1}') != parse_dynamic('{"a": "1"}')

    def test_sequence_equality_is_ordered(self):
        assert parse_dynamic("[1, 2]") == parse_dynamic("[1, 2]")
        assert parse_dynamic("[1, 2]") != parse_dynamic("[2, 1]")

    def test_hashable(self):
        values = {parse_dynamic("1"), parse_dynamic("1"), parse_dynamic("true"), parse_dynamic('{"a": [1]}')}
        assert len(values) == 3

    def test_not_equal_to_native(self):
        assert DynamicValue.integer(1) != 1


class TestNative:
    def test_from_native(self):
        assert DynamicValue.from_native(5) == DynamicValue.integer(5)
        assert DynamicValue.from_native(None) == DynamicValue.null()

    def test_absence_is_empty(self):
        assert DynamicValue.from_native().kind is ValueKind.EMPTY
        assert DynamicValue.from_native(MISSING).kind is ValueKind.EMPTY

    def test_to_native_round_trip(self):
        document = {"a": [1, 2.5, "x", None, True], "b": {"c": 2 ** 63}}
        assert decode_dynamic(document).to_native() == document
        assert decode_dynamic(json.loads(json.dumps(document))).to_native() == document

    def test_immutable(self):
        value = DynamicValue.integer(1)
        with pytest.raises(AttributeError):
            value.kind = ValueKind.STRING
        with pytest.raises(TypeError):
            parse_dynamic('{"a": 1}').value["a"] = DynamicValue.null()

    def test_range_checked_constructors(self):
        with pytest.raises(ValueError):
            DynamicValue.integer(2 ** 63)
        with pytest.raises(ValueError):
            DynamicValue.unsigned(-1)

    def test_display(self):
        assert str(parse_dynamic('[1, "a", null, true]')) == "[1, a, null, true]"
        assert repr(DynamicValue.integer(3)) == "DynamicValue.int(3)"
        assert repr(DynamicValue.empty()) == "DynamicValue.empty()"
