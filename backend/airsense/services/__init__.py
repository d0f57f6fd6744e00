"""
Services Package
================

These are the "workers" that do the actual work.

- WeatherService: Talks to OpenWeatherMap
- ModelClient: Talks to Gemini (with a bounded weather-tool loop)
- correct_readings: The local fallback corrector (pure function)
- ReadingStore: Holds the latest reading and the history
- IngestionService: The boss that runs every reading through the pipeline
"""

from .weather_service import WeatherService
from .model_client import ModelClient
from .fallback_corrector import correct_readings
from .reading_store import ReadingStore
from .ingestion_service import IngestionService

__all__ = [
    "WeatherService",
    "ModelClient",
    "correct_readings",
    "ReadingStore",
    "IngestionService",
]
