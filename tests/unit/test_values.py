from __future__ import annotations

from decimal import Decimal

import pytest

from fluentdynamo_py import AttributeValueRegistry, DuplicateKeyError


def test_null_with_conditional_use_is_skipped() -> None:
    values = AttributeValueRegistry()
    assert values.add(":x", None) is False
    assert len(values) == 0
    assert values.snapshot() is None


def test_null_without_conditional_use_registers_null_variant() -> None:
    values = AttributeValueRegistry()
    assert values.add(":x", None, conditional_use=False) is True
    assert values.snapshot() == {":x": {"NULL": True}}


def test_numeric_and_boolean_nulls_use_unset_markers() -> None:
    values = AttributeValueRegistry()
    values.add(":n", None, False, null_kind="N")
    values.add(":b", None, False, null_kind="BOOL")
    values.add(":m", None, False, null_kind="M")

    assert values.get(":n") == {"N": ""}
    assert values.get(":b") == {}
    assert values.get(":m") == {"NULL": True}


def test_empty_map_follows_conditional_use() -> None:
    values = AttributeValueRegistry()
    assert values.add(":skip", {}) is False
    assert values.add(":keep", {}, conditional_use=False) is True
    assert values.snapshot() == {":keep": {"M": {}}}


def test_typed_values_go_through_codec() -> None:
    values = AttributeValueRegistry()
    values.add(":s", "hello")
    values.add(":d", Decimal("99.99"))
    values.add(":b", False)
    values.add(":m", {"a": "x"})

    assert values.snapshot() == {
        ":s": {"S": "hello"},
        ":d": {"N": "99.99"},
        ":b": {"BOOL": False},
        ":m": {"M": {"a": {"S": "x"}}},
    }


def test_decimal_round_trips_through_number_text() -> None:
    values = AttributeValueRegistry()
    values.add(":price", Decimal("99.99"))
    wire = values.get(":price")
    assert wire is not None
    assert Decimal(wire["N"]) == Decimal("99.99")


def test_add_wire_and_add_range_pass_values_through() -> None:
    values = AttributeValueRegistry()
    values.add_wire(":a", {"S": "x"})
    values.add_range({":b": {"N": "1"}, ":c": {"BOOL": True}})
    assert values.snapshot() == {":a": {"S": "x"}, ":b": {"N": "1"}, ":c": {"BOOL": True}}


def test_duplicate_value_placeholder_rejected_even_with_equal_value() -> None:
    values = AttributeValueRegistry()
    values.add(":x", "same")

    with pytest.raises(DuplicateKeyError, match=":x") as exc:
        values.add(":x", "same")
    assert exc.value.registry == "value"

    with pytest.raises(DuplicateKeyError):
        values.add_range([(":x", {"S": "same"})])


def test_skipped_null_does_not_reserve_placeholder() -> None:
    values = AttributeValueRegistry()
    values.add(":x", None)
    values.add(":x", "later")
    assert values.snapshot() == {":x": {"S": "later"}}
