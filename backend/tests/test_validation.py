import math

import pytest

from airsense.utils.validation import clamp, parse_finite, validate_latitude, validate_longitude


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (21, 21.0),
        (21.5, 21.5),
        ("21.5", 21.5),
        (" -3 ", -3.0),
        ("1e2", 100.0),
        (0, 0.0),
    ],
)
def test_parse_finite_accepts_numbers_and_numeric_strings(value, expected) -> None:
    assert parse_finite(value) == expected


@pytest.mark.parametrize(
    "value",
    [None, "abc", "", True, False, math.nan, math.inf, -math.inf, "nan", "inf", [1], {"v": 1}],
)
def test_parse_finite_rejects_everything_else(value) -> None:
    assert parse_finite(value) is None


def test_coordinate_ranges() -> None:
    assert validate_latitude(41.29)
    assert validate_latitude(-90)
    assert not validate_latitude(90.5)
    assert validate_longitude(-180)
    assert not validate_longitude(181)
    assert not validate_longitude(math.nan)


def test_clamp() -> None:
    assert clamp(150, 0, 100) == 100
    assert clamp(-5, 0, 100) == 0
    assert clamp(42, 0, 100) == 42
