from __future__ import annotations

import pytest

from fluentdynamo_py import AttributeNameRegistry, DuplicateKeyError


def test_add_range_registers_every_entry() -> None:
    names = AttributeNameRegistry()
    names.add_range({"#pk": "partitionKey", "#sk": "sortKey"})

    snap = names.snapshot()
    assert snap == {"#pk": "partitionKey", "#sk": "sortKey"}
    assert len(names) == 2
    assert "#pk" in names


def test_empty_registry_snapshot_signals_omit() -> None:
    assert AttributeNameRegistry().snapshot() is None


def test_empty_strings_are_accepted() -> None:
    names = AttributeNameRegistry()
    names.add("", "")
    assert names.snapshot() == {"": ""}


def test_duplicate_placeholder_rejected_even_with_same_name() -> None:
    names = AttributeNameRegistry()
    names.add("#pk", "pk")

    with pytest.raises(DuplicateKeyError, match="#pk") as exc:
        names.add("#pk", "pk")
    assert exc.value.registry == "name"
    assert exc.value.placeholder == "#pk"


def test_add_range_keeps_entries_before_a_duplicate() -> None:
    names = AttributeNameRegistry()
    names.add("#b", "b")

    with pytest.raises(DuplicateKeyError):
        names.add_range([("#a", "a"), ("#b", "other"), ("#c", "c")])

    assert names.snapshot() == {"#b": "b", "#a": "a"}


def test_add_range_rejects_duplicates_within_one_call() -> None:
    names = AttributeNameRegistry()
    with pytest.raises(DuplicateKeyError):
        names.add_range([("#a", "a"), ("#a", "a")])


def test_snapshot_is_a_copy() -> None:
    names = AttributeNameRegistry()
    names.add("#a", "a")
    snap = names.snapshot()
    assert snap is not None
    snap["#b"] = "b"
    assert list(names) == ["#a"]
