from __future__ import annotations

import pytest

from services.api.app.models.recipient import Recipient
from services.api.app.services.recipients import (
    collapse_duplicates,
    diff_against_existing,
    find_duplicate_groups,
    recipient_key,
    validate_recipient,
    with_validation,
)
from services.api.tests.factories import recipient_payload


def _r(**overrides) -> Recipient:
    return Recipient.model_validate(recipient_payload(**overrides))


def test_scenario_c_first_gift_message_wins() -> None:
    first = _r(gift_message="Happy holidays")
    second = _r(gift_message="Season's greetings")

    unique = collapse_duplicates([first, second])

    assert len(unique) == 1
    assert unique[0].gift_message == "Happy holidays"
    assert find_duplicate_groups([first, second]) == [[first, second]]


def test_key_ignores_case_whitespace_company_and_message() -> None:
    a = _r(first_name="ada", address1="12  Market  St", company="A", gift_message="x")
    b = _r(first_name=" ADA ", address1="12 market st", company=None, gift_message=None)
    assert recipient_key(a) == recipient_key(b)


def test_different_zip_is_not_a_duplicate() -> None:
    assert recipient_key(_r(zip="60601")) != recipient_key(_r(zip="60602"))


def test_dedupe_preserves_first_occurrence_order() -> None:
    a, b, c = _r(first_name="A"), _r(first_name="B"), _r(first_name="C")
    assert collapse_duplicates([a, b, a, c, b]) == [a, b, c]


def test_dedupe_is_idempotent() -> None:
    rows = [_r(first_name="A"), _r(first_name="B"), _r(first_name="a"), _r(first_name="B")]
    once = collapse_duplicates(rows)
    assert find_duplicate_groups(once) == []
    assert collapse_duplicates(once) == once


def test_diff_against_existing() -> None:
    existing = [_r(first_name="A"), _r(first_name="B")]
    incoming = [_r(first_name="b"), _r(first_name="C"), _r(first_name="C", gift_message="dup")]

    result = diff_against_existing(existing, incoming)

    assert [r.first_name for r in result.unique] == ["C"]
    assert [r.first_name for r in result.duplicates] == ["b", "C"]


def test_valid_recipient_has_no_errors() -> None:
    assert validate_recipient(_r()) == []
    assert validate_recipient(_r(zip="60601-1234")) == []
    assert validate_recipient(_r(zip="606011234")) == []


@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"first_name": " "}, "first_name: First name is required"),
        ({"city": ""}, "city: City is required"),
        ({"state": "Illinois"}, "state: State must be 2-letter abbreviation"),
        ({"state": "ZZ"}, "state: Invalid US state abbreviation"),
        ({"zip": "6060"}, "zip: ZIP must be 5 digits or 5+4 format"),
        ({"gift_message": "x" * 201}, "gift_message: Gift message must be 200 characters or less"),
    ],
)
def test_invalid_fields_are_reported(overrides: dict, error: str) -> None:
    assert error in validate_recipient(_r(**overrides))


def test_with_validation_flags_and_normalizes_state() -> None:
    checked = with_validation(_r(state="il", zip="bad"))
    assert checked.state == "IL"
    assert checked.is_valid is False
    assert checked.errors == ["zip: ZIP must be 5 digits or 5+4 format"]
