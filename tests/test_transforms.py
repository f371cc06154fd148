"""Test named value transforms."""
from datetime import datetime, timezone

import pytest

from possync.mapping import apply_transform, cents_to_dollars, percentage_to_decimal


def test_percentage_to_decimal():
    assert percentage_to_decimal(8.25) == pytest.approx(0.0825)
    assert percentage_to_decimal("8.25") == pytest.approx(0.0825)
    assert percentage_to_decimal(0.0825) == pytest.approx(0.0825)
    assert percentage_to_decimal(1) == 1


def test_cents_to_dollars():
    assert cents_to_dollars(12550) == 125.5
    assert cents_to_dollars("99") == 0.99


def test_number_parses_leading_number():
    assert apply_transform("number", "12.5 USD") == 12.5
    assert apply_transform("number", "abc") == 0
    assert apply_transform("number", "-3e2") == -300
    assert apply_transform("number", True) == 1


@pytest.mark.parametrize("word,expected", [
    ("yes", True), ("Y", True), ("1", True), ("active", True),
    ("no", False), ("N", False), ("0", False), ("inactive", False),
    ("maybe", None),
])
def test_boolean_words(word, expected):
    assert apply_transform("boolean", word) is expected


def test_date_formats():
    assert apply_transform("date", "2026-10-17T09:30:00Z") == datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)
    assert apply_transform("date", "20261017") == datetime(2026, 10, 17)
    assert apply_transform("date", "10/17/2026") == datetime(2026, 10, 17)
    assert apply_transform("date", 1_700_000_000_000) == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
    assert apply_transform("date", "not a date") is None


def test_string_transforms():
    assert apply_transform("string", 42) == "42"
    assert apply_transform("uppercase", "beer") == "BEER"
    assert apply_transform("lowercase", "BEER") == "beer"
    assert apply_transform("trim", "  beer ") == "beer"


def test_none_passes_through():
    assert apply_transform("number", None) is None
    assert apply_transform(None, "x") == "x"


def test_unknown_transform_raises():
    with pytest.raises(ValueError, match="Unknown transform: rot13"):
        apply_transform("rot13", "x")
