import pytest

from mwork.validation import (
    ValidationError,
    check_length,
    check_one_of,
    check_range,
    check_url,
)


def test_length_within_bounds_passes():
    errors = {}
    assert check_length(errors, "name", "Anna", 2, 100) is True
    assert errors == {}


def test_length_too_short_records_error():
    errors = {}
    assert check_length(errors, "name", "A", 2, 100) is False
    assert "name" in errors


def test_length_too_long_records_error():
    errors = {}
    assert check_length(errors, "bio", "x" * 2001, None, 2000) is False
    assert "bio" in errors


def test_length_counts_characters_not_bytes():
    errors = {}
    assert check_length(errors, "name", "Аб", 2, 2) is True
    assert errors == {}


def test_length_skips_none():
    errors = {}
    assert check_length(errors, "name", None, 2, 100) is True
    assert errors == {}


def test_first_error_is_kept():
    errors = {"name": "is required"}
    assert check_length(errors, "name", "A", 2, 100) is False
    assert errors == {"name": "is required"}


@pytest.mark.parametrize("value, expected", [(17, False), (18, True), (100, True), (101, False)])
def test_range_bounds_are_inclusive(value, expected):
    errors = {}
    assert check_range(errors, "age", value, 18, 100) is expected
    assert ("age" in errors) is (not expected)


def test_range_skips_none():
    errors = {}
    assert check_range(errors, "height", None, 100, 250) is True
    assert errors == {}


def test_range_with_only_minimum():
    errors = {}
    assert check_range(errors, "hourly_rate", -1.0, 0, None) is False
    assert check_range({}, "hourly_rate", 10_000.0, 0, None) is True


def test_one_of_accepts_choice_and_rejects_other():
    choices = ("male", "female", "other")
    errors = {}
    assert check_one_of(errors, "gender", "female", choices) is True
    assert check_one_of(errors, "gender", "unknown", choices) is False
    assert "gender" in errors


def test_one_of_skips_none():
    errors = {}
    assert check_one_of(errors, "gender", None, ("male",)) is True
    assert errors == {}


@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://example.com", True),
        ("http://example.com/path?q=1", True),
        ("mailto:someone@example.com", True),
        ("not a url", False),
        ("example.com", False),
        ("http://", False),
    ],
)
def test_url_check(value, expected):
    errors = {}
    assert check_url(errors, "website", value) is expected
    assert ("website" in errors) is (not expected)


def test_validation_error_carries_errors():
    error = ValidationError({"name": "is required"})
    assert error.errors == {"name": "is required"}
    assert "name" in str(error)
    assert isinstance(error, ValueError)