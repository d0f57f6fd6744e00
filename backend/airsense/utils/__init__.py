"""
Utility modules for the telemetry backend.
"""

from airsense.utils.validation import (
    parse_finite,
    validate_latitude,
    validate_longitude,
    clamp,
)
from airsense.utils.json_extract import (
    strip_code_fences,
    find_balanced_object,
    extract_json_object,
)

__all__ = [
    "parse_finite",
    "validate_latitude",
    "validate_longitude",
    "clamp",
    "strip_code_fences",
    "find_balanced_object",
    "extract_json_object",
]
