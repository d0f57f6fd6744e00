import math
from datetime import datetime, timezone

import pytest

from airsense.models import READING_FIELDS, Reading, WeatherSnapshot
from airsense.services.fallback_corrector import FIELD_RANGES, correct_readings, field_median


def reading(**values):
    base = {"temperature": 22.0, "humidity": 50.0, "mq135": 180.0, "pm25": 10.0, "pm10": 18.0}
    base.update(values)
    return base


WINDOWS = [
    [reading()],
    [reading(), reading(temperature=None), reading(humidity=150)],
    [reading(pm25=math.nan), reading(pm25="bad"), reading(pm25=-4), reading(pm25=3000)],
    [reading(temperature=t) for t in (-80, -10, 0, 18, 35, 90)],
    [{"temperature": None, "humidity": None, "mq135": None, "pm25": None, "pm10": None}],
    [reading(timestamp="2026-01-06T03:00:00Z"), reading(timestamp=None)],
]

WEATHERS = [None, WeatherSnapshot(temperature_c=10.0, humidity_pct=70.0, description="clouds")]


@pytest.mark.parametrize("window", WINDOWS)
@pytest.mark.parametrize("weather", WEATHERS)
def test_output_has_same_length_and_order(window, weather) -> None:
    tagged = [dict(r, device_seq=i) for i, r in enumerate(window)]

    result = correct_readings(tagged, weather)

    assert len(result) == len(window)
    assert [r["device_seq"] for r in result] == list(range(len(window)))
    assert all(r["source"] == "local-fallback" for r in result)


@pytest.mark.parametrize("window", WINDOWS)
def test_second_pass_changes_nothing(window) -> None:
    once = correct_readings(window)
    twice = correct_readings(once)

    for first, second in zip(once, twice):
        for field in READING_FIELDS:
            assert first.get(field) == second.get(field)
        assert first["timestamp"] == second["timestamp"]
        assert second["flag"] == "no_change"


def test_missing_value_is_replaced_by_median_of_valid_values() -> None:
    window = [
        reading(humidity=40.0),
        reading(humidity=math.nan),
        reading(humidity=50.0),
        reading(humidity=44.0),
        reading(humidity=70.0),
    ]

    result = correct_readings(window)

    # valid values 40, 44, 50, 70 -> (44 + 50) / 2
    assert result[1]["humidity"] == 47.0
    assert result[1]["flag"] == "anomaly_detected"
    assert "humidity" in result[1]["reason"]
    assert [r["humidity"] for r in result] == [40.0, 47.0, 50.0, 44.0, 70.0]


def test_odd_window_median() -> None:
    assert field_median([reading(pm10=5), reading(pm10=100), reading(pm10=7)], "pm10") == 7.0
    assert field_median([reading(pm10=None)], "pm10") is None


def test_field_left_absent_when_window_has_no_valid_value() -> None:
    result = correct_readings([reading(mq135=None), reading(mq135="n/a")])

    assert "mq135" not in result[0]
    assert "mq135" not in result[1]
    assert result[0]["temperature"] == 22.0


@pytest.mark.parametrize(("raw", "expected"), [(150, 100.0), (-5, 0.0), (55, 55.0)])
def test_humidity_is_clamped(raw, expected) -> None:
    [result] = correct_readings([reading(humidity=raw)])

    assert result["humidity"] == expected


def test_every_field_is_clamped_to_its_range() -> None:
    [high] = correct_readings([{f: 1e9 for f in READING_FIELDS}])
    [low] = correct_readings([{f: -1e9 for f in READING_FIELDS}])

    for field, (lower, upper) in FIELD_RANGES.items():
        assert high[field] == upper
        assert low[field] == lower


def test_temperature_blends_toward_weather_when_far_apart() -> None:
    weather = WeatherSnapshot(temperature_c=10.0, humidity_pct=60.0, description="clear sky")

    [result] = correct_readings([reading(temperature=40.0)], weather)

    assert result["temperature"] == 25.0
    assert result["flag"] == "weather_adjusted"


def test_temperature_within_divergence_is_kept() -> None:
    weather = WeatherSnapshot(temperature_c=10.0, humidity_pct=60.0, description="clear sky")

    [result] = correct_readings([reading(temperature=25.0)], weather)

    assert result["temperature"] == 25.0
    assert result["flag"] == "no_change"


def test_timestamps_are_stamped_or_parsed() -> None:
    result = correct_readings([reading(), reading(timestamp="2026-01-06T03:00:00Z")])

    assert isinstance(result[0]["timestamp"], datetime)
    assert result[0]["timestamp"].tzinfo is not None
    assert result[1]["timestamp"] == datetime(2026, 1, 6, 3, 0, tzinfo=timezone.utc)


def test_accepts_reading_objects() -> None:
    window = [Reading(temperature=20, humidity=45, mq135=170, pm25=8, pm10=14)]

    [result] = correct_readings(window)

    assert result["mq135"] == 170.0
    assert Reading(**result).gas_index == 170.0


def test_input_is_not_mutated() -> None:
    original = reading(humidity=150, timestamp=None)
    snapshot = dict(original)

    correct_readings([original])

    assert original == snapshot
