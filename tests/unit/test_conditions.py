from __future__ import annotations

import pytest

from fluentdynamo_py import ConditionAccumulator, MissingConditionError, ValidationError


def test_combine_single_fragment_verbatim() -> None:
    acc = ConditionAccumulator()
    acc.add("A")
    assert acc.combine() == "A"


def test_combine_multiple_fragments_parenthesized() -> None:
    acc = ConditionAccumulator()
    acc.add("A")
    acc.add("B")
    assert acc.combine() == "(A) AND (B)"

    acc.add("C")
    assert acc.combine() == "(A) AND (B) AND (C)"
    assert acc.combine() == "(A) AND (B) AND (C)"
    assert acc.fragments == ("A", "B", "C")
    assert len(acc) == 3


def test_empty_accumulator() -> None:
    acc = ConditionAccumulator("KeyConditionExpression")
    assert acc.combine() is None
    assert not acc
    with pytest.raises(MissingConditionError, match="KeyConditionExpression"):
        acc.combine(required=True)


def test_blank_fragment_rejected() -> None:
    with pytest.raises(ValidationError):
        ConditionAccumulator().add("  ")
