"""
Input Validation Utilities
===========================

Common validation functions for sensor payloads and query parameters.
"""

import math
from typing import Any, Optional


def parse_finite(value: Any) -> Optional[float]:
    """
    Coerce a payload value to a finite float.

    Devices send numbers, but some firmware sends them as strings
    ("23.4"). Both are fine. Booleans, None, NaN, inf and non-numeric
    strings are not.

    Args:
        value: Raw value from the JSON body

    Returns:
        The float, or None if the value isn't a usable number
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def validate_latitude(lat: float) -> bool:
    """
    Validate a latitude in degrees.

    Returns:
        True if within [-90, 90], False otherwise
    """
    return math.isfinite(lat) and -90.0 <= lat <= 90.0


def validate_longitude(lon: float) -> bool:
    """
    Validate a longitude in degrees.

    Returns:
        True if within [-180, 180], False otherwise
    """
    return math.isfinite(lon) and -180.0 <= lon <= 180.0


def clamp(value: float, low: float, high: float) -> float:
    """Pin value into [low, high]."""
    return max(low, min(high, value))
