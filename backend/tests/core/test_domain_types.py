"""Domain Types — tests for satisfaction label/storage conversion."""

import pytest

from engcoach.core.domain_types import Satisfaction


@pytest.mark.parametrize("label,stored", [
    (Satisfaction.SATISFIED, 1),
    (Satisfaction.UNSATISFIED, 0),
    (Satisfaction.NOT_PROVIDED, None),
])
def test_satisfaction_storage_mapping(label, stored):
    assert label.to_db() == stored
    assert Satisfaction.from_db(stored) is label


def test_parse_is_case_insensitive():
    assert Satisfaction.parse(" satisfied ") is Satisfaction.SATISFIED
    assert Satisfaction.parse("NOT PROVIDED") is Satisfaction.NOT_PROVIDED


def test_parse_unknown_falls_back_to_not_provided():
    assert Satisfaction.parse("meh") is Satisfaction.NOT_PROVIDED
    assert Satisfaction.parse(None) is Satisfaction.NOT_PROVIDED
    assert Satisfaction.parse(1) is Satisfaction.NOT_PROVIDED


def test_satisfaction_serializes_as_label():
    assert Satisfaction.SATISFIED.value == "Satisfied"
    assert Satisfaction.NOT_PROVIDED == "Not provided"
