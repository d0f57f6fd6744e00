"""
Ingestion Service
=================

This is the BRAIN of the whole operation!

WHAT HAPPENS TO A READING:
-------------------------
    POST /api/data {temperature, humidity, mq135, pm25, pm10}
            |
            v
    1. VALIDATE   every field must be a finite number      -> 400 if not
    2. NORMALIZE  floats + timestamp = candidate reading
    3. CORRECT    weather (if we know where the device is)
                  + Gemini review of candidate, last reading, last 20 readings
    4. FALLBACK   Gemini unreachable? local corrector over history + candidate
    5. COMMIT     append to history, becomes the latest reading

INGEST MODES:
------------
    strict  (default)  No model configured           -> 503, nothing stored
                       Model answered garbage         -> 502, nothing stored
    lenient            Both cases use the local corrector and store the result

In both modes an UNREACHABLE model (timeout, network, auth) falls back to the
local corrector - the device shouldn't lose a reading because Gemini hiccuped.

The store is only touched in step 5, after every await has finished.
"""

import logging
from typing import Any, Optional

from airsense.config import Config, IngestMode
from airsense.errors import InvalidReadingError, ModelNotConfiguredError, ModelOutputUnusableError
from airsense.models import (
    READING_FIELDS,
    AnalyzeResponse,
    ModelVerdict,
    Reading,
    ReadingFlag,
    ReadingSource,
    WeatherSnapshot,
)
from airsense.services.fallback_corrector import correct_readings
from airsense.services.model_client import (
    BATCH_REVIEW_INSTRUCTION,
    READING_REVIEW_INSTRUCTION,
    ModelClient,
)
from airsense.services.reading_store import ReadingStore
from airsense.services.weather_service import WeatherService
from airsense.utils.validation import parse_finite, validate_latitude, validate_longitude

logger = logging.getLogger(__name__)


# Keys the model has been seen using for the gas index
GAS_INDEX_KEYS = ("mq135", "gasIndex", "gas_index")


class IngestionService:
    """
    Validates, corrects and stores readings. Also runs batch analysis.

    Everything it needs is handed in - create_app() builds one per app.
    """

    def __init__(
        self,
        store: ReadingStore,
        model_client: ModelClient,
        weather_service: WeatherService,
        config: Config,
    ):
        self.store = store
        self.model_client = model_client
        self.weather_service = weather_service
        self.config = config

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, body: Any) -> Reading:
        """
        Check a device payload and build the candidate reading.

        Raises:
            InvalidReadingError: body isn't an object, or any field is
                missing or not a finite number
        """
        if not isinstance(body, dict):
            raise InvalidReadingError("Invalid or missing data fields")

        values = {}
        bad_fields = []
        for field in READING_FIELDS:
            value = parse_finite(body.get(field))
            if value is None:
                bad_fields.append(field)
            else:
                values[field] = value

        if bad_fields:
            logger.error(f"Invalid data received: {body} (bad fields: {', '.join(bad_fields)})")
            raise InvalidReadingError(
                f"Invalid or missing data fields: {', '.join(bad_fields)}"
            )

        return Reading(**values, source=ReadingSource.DEVICE)

    def resolve_coordinates(
        self,
        lat: Optional[float],
        lon: Optional[float],
    ) -> Optional[tuple[float, float]]:
        """
        Coordinates from the request, else the configured defaults, else None.

        Raises:
            InvalidReadingError: only one of lat/lon given, or out of range
        """
        if lat is None and lon is None:
            return self.config.default_coordinates
        if lat is None or lon is None:
            raise InvalidReadingError("lat and lon must be provided together")
        if not validate_latitude(lat) or not validate_longitude(lon):
            raise InvalidReadingError(f"Invalid coordinates: lat={lat}, lon={lon}")
        return (lat, lon)

    async def fetch_weather(
        self,
        coordinates: Optional[tuple[float, float]],
    ) -> Optional[WeatherSnapshot]:
        if coordinates is None:
            return None
        return await self.weather_service.fetch_current(*coordinates)

    # =========================================================================
    # INGESTION
    # =========================================================================

    async def ingest(
        self,
        body: Any,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ) -> Reading:
        """
        Run a device payload through the whole pipeline and commit it.

        Returns:
            The committed reading

        Raises:
            InvalidReadingError: bad payload or coordinates (400)
            ModelNotConfiguredError: strict mode without a model (503)
            ModelOutputUnusableError: strict mode, model answered garbage (502)
        """
        logger.info(f"Raw data received: {body}")

        candidate = self.validate(body)
        coordinates = self.resolve_coordinates(lat, lon)
        strict = self.config.INGEST_MODE == IngestMode.STRICT

        if not self.model_client.is_configured and strict:
            logger.error("Model correction required but GOOGLE_API_KEY is not configured")
            raise ModelNotConfiguredError("Model correction is not configured")

        weather = await self.fetch_weather(coordinates)

        reading = None
        if self.model_client.is_configured:
            verdict = await self.model_client.review(
                self.build_review_payload(candidate, weather, coordinates),
                *(coordinates or (None, None)),
            )
            if verdict is None:
                logger.warning("Model unavailable; using local fallback corrector")
            elif not self.is_usable(verdict):
                if strict:
                    raise ModelOutputUnusableError(
                        f"Model returned an unusable result: {verdict.reason or verdict.flag}"
                    )
                logger.warning("Model result unusable; using local fallback corrector")
            else:
                reading = self.apply_verdict(candidate, verdict)

        if reading is None:
            reading = self.apply_fallback(candidate, weather)

        self.store.append(reading)
        logger.info(
            f"Clean data saved: {reading.values()} "
            f"source={reading.source.value} flag={reading.flag.value}"
        )
        return reading

    def build_review_payload(
        self,
        candidate: Reading,
        weather: Optional[WeatherSnapshot],
        coordinates: Optional[tuple[float, float]],
    ) -> dict[str, Any]:
        latest = self.store.latest
        payload = {
            "instruction": READING_REVIEW_INSTRUCTION,
            "incoming": candidate.to_wire(),
            "latest": latest.to_wire() if latest else None,
            "history": [r.to_wire() for r in self.store.recent(self.config.HISTORY_WINDOW)],
            "weather": weather.model_dump() if weather else None,
        }
        if coordinates:
            payload["coordinates"] = {"lat": coordinates[0], "lon": coordinates[1]}
        return payload

    @staticmethod
    def is_usable(verdict: ModelVerdict) -> bool:
        return not verdict.is_parse_error and isinstance(verdict.corrected, dict)

    def apply_verdict(self, candidate: Reading, verdict: ModelVerdict) -> Reading:
        """
        Adopt the model's corrected values field by field.

        Missing or non-numeric fields keep the candidate's value. A flag
        outside the known set is recorded as "error".
        """
        corrected = verdict.corrected
        values = candidate.values()
        for field in READING_FIELDS:
            keys = GAS_INDEX_KEYS if field == "mq135" else (field,)
            for key in keys:
                value = parse_finite(corrected.get(key))
                if value is not None:
                    values[field] = value
                    break

        try:
            flag = ReadingFlag(verdict.flag)
        except ValueError:
            logger.warning(f"Model returned unknown flag {verdict.flag!r}")
            flag = ReadingFlag.ERROR

        return Reading(
            **values,
            timestamp=candidate.timestamp,
            source=ReadingSource.MODEL_CORRECTED,
            flag=flag,
            reason=verdict.reason,
        )

    def apply_fallback(self, candidate: Reading, weather: Optional[WeatherSnapshot]) -> Reading:
        """Correct the candidate against the recent history window."""
        window = self.store.recent(self.config.HISTORY_WINDOW) + [candidate]
        corrected = correct_readings(window, weather)[-1]
        return Reading(**corrected)

    # =========================================================================
    # BATCH ANALYSIS
    # =========================================================================

    async def analyze(
        self,
        readings: Any,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ) -> AnalyzeResponse:
        """
        Review a batch of readings without storing anything.

        The model's verdict is returned as-is (parse_error included); if the
        model isn't configured or can't be reached the local corrector runs.
        """
        if not isinstance(readings, list) or not readings:
            raise InvalidReadingError("Request body must be a non-empty array of readings")
        if not all(isinstance(item, dict) for item in readings):
            raise InvalidReadingError("Every reading must be a JSON object")

        coordinates = self.resolve_coordinates(lat, lon)
        weather = await self.fetch_weather(coordinates)

        if self.model_client.is_configured:
            payload = {
                "instruction": BATCH_REVIEW_INSTRUCTION,
                "readings": readings,
                "weather": weather.model_dump() if weather else None,
            }
            if coordinates:
                payload["coordinates"] = {"lat": coordinates[0], "lon": coordinates[1]}

            verdict = await self.model_client.review(payload, *(coordinates or (None, None)))
            if verdict is not None:
                return AnalyzeResponse(
                    corrected=verdict.corrected,
                    source="gemini",
                    flag=verdict.flag,
                    reason=verdict.reason,
                    weather=weather,
                )
            logger.warning("Model unavailable for analysis; using local fallback corrector")

        return AnalyzeResponse(
            corrected=correct_readings(readings, weather),
            source=ReadingSource.LOCAL_FALLBACK.value,
            weather=weather,
        )
