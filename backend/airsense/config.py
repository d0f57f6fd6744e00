"""
Configuration
=============

Application configuration loaded from environment variables.
main.py calls load_dotenv() first, so a .env file next to the backend works too.

Environment Variables:
    GOOGLE_API_KEY: Gemini API key (unset = model correction not configured)
    GEMINI_MODEL: Gemini model name (default: gemini-2.5-flash)
    MODEL_TIMEOUT: Seconds to wait for one model call (default: 30)
    OPENWEATHER_API_KEY: OpenWeatherMap key (unset = no weather context)
    WEATHER_TIMEOUT: Seconds to wait for the weather API (default: 5)
    DEFAULT_LAT / DEFAULT_LON: Coordinates used when a request has none
    INGEST_MODE: "strict" (model required) or "lenient" (default: strict)
    EMPTY_LATEST_POLICY: "not_found" or "placeholder" (default: not_found)
    HISTORY_WINDOW: Readings passed to the model per request (default: 20)
    FRONTEND_URL: URL of the frontend for CORS
    PORT: Listen port when started with `python -m airsense.main` (default: 3000)
    LOG_LEVEL: Logging level (default: INFO)
"""

import logging
import os
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class IngestMode(str, Enum):
    """
    What POST /api/data does when the model can't be used.

    - STRICT: fail the request (503 not configured, 502 unusable reply)
    - LENIENT: run the local fallback corrector and commit anyway
    """
    STRICT = "strict"
    LENIENT = "lenient"


class EmptyLatestPolicy(str, Enum):
    """What GET /api/data returns before any reading was accepted."""
    NOT_FOUND = "not_found"
    PLACEHOLDER = "placeholder"


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer, using {default}")
        return default


def _env_enum(name: str, enum_cls, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: expected one of {[m.value for m in enum_cls]}")
        return default


class Config:
    """
    Snapshot of the environment at construction time.

    Build one at startup (create_app does this) - tests build their own
    with overrides instead of touching os.environ.
    """

    def __init__(self, **overrides):
        # Gemini
        self.GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY") or None
        self.GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.MODEL_TIMEOUT = _env_float("MODEL_TIMEOUT", 30.0)

        # OpenWeatherMap
        self.OPENWEATHER_API_KEY = os.getenv("OPENWEATHER_API_KEY") or None
        self.WEATHER_TIMEOUT = _env_float("WEATHER_TIMEOUT", 5.0)

        # Fallback coordinates for requests without ?lat=&lon=
        self.DEFAULT_LAT = _env_float("DEFAULT_LAT", None)
        self.DEFAULT_LON = _env_float("DEFAULT_LON", None)

        # Policies
        self.INGEST_MODE = _env_enum("INGEST_MODE", IngestMode, IngestMode.STRICT)
        self.EMPTY_LATEST_POLICY = _env_enum(
            "EMPTY_LATEST_POLICY", EmptyLatestPolicy, EmptyLatestPolicy.NOT_FOUND
        )
        self.HISTORY_WINDOW = max(1, _env_int("HISTORY_WINDOW", 20))

        # Server
        self.FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
        self.PORT = _env_int("PORT", 3000)
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(self, key, value)

        if (self.DEFAULT_LAT is None) != (self.DEFAULT_LON is None):
            logger.warning("DEFAULT_LAT and DEFAULT_LON must be set together; ignoring both")
            self.DEFAULT_LAT = None
            self.DEFAULT_LON = None

    @property
    def CORS_ORIGINS(self) -> list[str]:
        # Add your production frontend URL via FRONTEND_URL
        return [
            self.FRONTEND_URL,
            "http://localhost:5173",    # Vite dev server
            "http://localhost:3000",    # Create React App
            "http://127.0.0.1:5173",
            "http://127.0.0.1:3000",
        ]

    @property
    def default_coordinates(self) -> Optional[tuple[float, float]]:
        if self.DEFAULT_LAT is None or self.DEFAULT_LON is None:
            return None
        return (self.DEFAULT_LAT, self.DEFAULT_LON)
