"""
Local Fallback Corrector
========================

What we do with readings when the model can't look at them.

HOW IT WORKS:
------------
Every numeric field is handled on its own, across the whole window:

    1. Median  - take every valid value of the field in the window
                 (even-length windows average the two middle values)
    2. Repair  - missing/garbage value? use the median.
                 real value? clamp it into the plausible range.
    3. Weather - sensor temperature more than 15°C away from the outside
                 temperature? replace it with the average of the two (once).
    4. Stamp   - readings without a timestamp get "now" (UTC)

It's a pure function: same input, same output, nothing touched outside.
Running it again on its own output (without weather) changes nothing.

PLAUSIBLE RANGES:
----------------
    temperature   -50 .. 60    °C
    humidity        0 .. 100   %
    mq135           0 .. 1023  (10-bit ADC on the ESP8266)
    pm25            0 .. 1000  µg/m³
    pm10            0 .. 1000  µg/m³
"""

import logging
import statistics
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Union

from airsense.models import READING_FIELDS, Reading, ReadingFlag, ReadingSource, WeatherSnapshot
from airsense.utils.validation import clamp, parse_finite

logger = logging.getLogger(__name__)


FIELD_RANGES: dict[str, tuple[float, float]] = {
    "temperature": (-50.0, 60.0),
    "humidity": (0.0, 100.0),
    "mq135": (0.0, 1023.0),
    "pm25": (0.0, 1000.0),
    "pm10": (0.0, 1000.0),
}

# Sensor vs outside temperature gap (°C) that triggers blending
WEATHER_DIVERGENCE_C = 15.0


def field_median(window: list[Mapping[str, Any]], field: str) -> Optional[float]:
    """Median of the valid values of one field, or None if there are none."""
    values = [v for v in (parse_finite(r.get(field)) for r in window) if v is not None]
    if not values:
        return None
    return float(statistics.median(values))


def _stamp(value: Any) -> Any:
    if value is None or value == "":
        return datetime.now(timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return value


def _as_mapping(item: Union[Reading, Mapping[str, Any]]) -> dict[str, Any]:
    if isinstance(item, Reading):
        return item.model_dump(by_alias=True)
    return dict(item)


def correct_readings(
    readings: Iterable[Union[Reading, Mapping[str, Any]]],
    weather: Optional[WeatherSnapshot] = None,
) -> list[dict[str, Any]]:
    """
    Correct a window of readings.

    Args:
        readings: Oldest first. Dicts in wire format (extra keys are kept)
                  or Reading objects.
        weather: Outside conditions, if we have them

    Returns:
        New dicts, same length and order as the input, each with
        source="local-fallback" plus a flag and reason describing
        what was changed
    """
    window = [_as_mapping(item) for item in readings]
    medians = {field: field_median(window, field) for field in READING_FIELDS}

    corrected = []
    for original in window:
        result = dict(original)
        imputed = []
        clamped = []

        for field in READING_FIELDS:
            low, high = FIELD_RANGES[field]
            value = parse_finite(original.get(field))
            if value is None:
                median = medians[field]
                if median is None:
                    result.pop(field, None)
                    continue
                result[field] = clamp(median, low, high)
                imputed.append(field)
                continue

            bounded = clamp(value, low, high)
            if bounded != value:
                clamped.append(field)
            result[field] = bounded

        blended = False
        temperature = result.get("temperature")
        if weather is not None and temperature is not None:
            if abs(temperature - weather.temperature_c) > WEATHER_DIVERGENCE_C:
                result["temperature"] = (temperature + weather.temperature_c) / 2
                blended = True

        result["timestamp"] = _stamp(original.get("timestamp"))
        result["source"] = ReadingSource.LOCAL_FALLBACK.value

        reasons = []
        if imputed:
            reasons.append(f"imputed median for {', '.join(imputed)}")
        if clamped:
            reasons.append(f"clamped {', '.join(clamped)} to plausible range")
        if blended:
            reasons.append(
                f"temperature {temperature:g}°C blended toward ambient "
                f"{weather.temperature_c:g}°C"
            )

        if blended:
            result["flag"] = ReadingFlag.WEATHER_ADJUSTED.value
        elif imputed or clamped:
            result["flag"] = ReadingFlag.ANOMALY_DETECTED.value
        else:
            result["flag"] = ReadingFlag.NO_CHANGE.value
        result["reason"] = "; ".join(reasons) if reasons else "Values within plausible ranges"

        corrected.append(result)

    changed = sum(1 for r in corrected if r["flag"] != ReadingFlag.NO_CHANGE.value)
    logger.debug(f"Fallback corrector: {len(corrected)} readings, {changed} adjusted")
    return corrected
