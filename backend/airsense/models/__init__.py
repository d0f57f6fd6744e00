"""
Models Package
==============

This is where all our data models live.
Import from here instead of the individual files.

Example:
    from airsense.models import Reading, ReadingFlag
"""

from .reading import (
    # Field names devices send
    READING_FIELDS,

    # Provenance and outcome labels
    ReadingSource,
    ReadingFlag,

    # Core data
    Reading,
    WeatherSnapshot,
    ModelVerdict,

    # What we send back to the frontend
    IngestResponse,
    AnalyzeResponse,
)

__all__ = [
    "READING_FIELDS",
    "ReadingSource",
    "ReadingFlag",
    "Reading",
    "WeatherSnapshot",
    "ModelVerdict",
    "IngestResponse",
    "AnalyzeResponse",
]
