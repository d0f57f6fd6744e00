"""
Reading Models
==============
Pydantic models for telemetry readings, weather context and model verdicts.

This module defines the data structures used throughout the application:
- Reading: one normalized sensor sample as stored and returned to the frontend
- WeatherSnapshot: current ambient conditions from the weather provider
- ModelVerdict: the parsed reply of the language model
- Response models: what the API returns for ingestion and analysis

WIRE FORMAT:
    Devices post the gas sensor value as "mq135". We keep that key on the
    wire (frontend and firmware both use it) and call it gas_index in code.

Example Reading (JSON):
    {
        "temperature": 24.5,
        "humidity": 51.0,
        "mq135": 182.0,
        "pm25": 12.0,
        "pm10": 20.0,
        "timestamp": "2026-01-06T03:00:00Z",
        "source": "model-corrected",
        "flag": "no_change",
        "reason": "Values consistent with history"
    }
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# Numeric fields every reading carries, in wire order
READING_FIELDS = ("temperature", "humidity", "mq135", "pm25", "pm10")


# =============================================================================
# ENUMS
# =============================================================================

class ReadingSource(str, Enum):
    """
    Where the committed values came from.

    - DEVICE: raw values exactly as the device sent them
    - MODEL_CORRECTED: values reviewed (and possibly corrected) by the model
    - LOCAL_FALLBACK: values passed through the local statistical corrector
    """
    DEVICE = "device"
    MODEL_CORRECTED = "model-corrected"
    LOCAL_FALLBACK = "local-fallback"


class ReadingFlag(str, Enum):
    """Outcome label attached to a committed reading."""
    ANOMALY_DETECTED = "anomaly_detected"
    WEATHER_ADJUSTED = "weather_adjusted"
    NO_CHANGE = "no_change"
    ERROR = "error"
    PARSE_ERROR = "parse_error"


# =============================================================================
# READING
# =============================================================================

class Reading(BaseModel):
    """
    A single normalized sensor sample.

    All numeric fields are finite floats - anything else is rejected before
    a Reading is ever constructed.
    """
    model_config = ConfigDict(populate_by_name=True)

    temperature: float = Field(..., description="Temperature in °C")
    humidity: float = Field(..., description="Relative humidity %")
    gas_index: float = Field(..., alias="mq135", description="MQ135 gas sensor index")
    pm25: float = Field(..., description="PM2.5 concentration µg/m³")
    pm10: float = Field(..., description="PM10 concentration µg/m³")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the reading was accepted",
    )
    source: ReadingSource = Field(default=ReadingSource.DEVICE)
    flag: ReadingFlag = Field(default=ReadingFlag.NO_CHANGE)
    reason: str = Field(default="")

    def values(self) -> dict[str, float]:
        """Numeric fields keyed by their wire names."""
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "mq135": self.gas_index,
            "pm25": self.pm25,
            "pm10": self.pm10,
        }

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using the device's key names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def placeholder(cls) -> "Reading":
        """Zero-valued reading served when nothing has been ingested yet."""
        return cls(
            temperature=0.0,
            humidity=0.0,
            mq135=0.0,
            pm25=0.0,
            pm10=0.0,
            flag=ReadingFlag.NO_CHANGE,
            reason="No data available yet",
        )


# =============================================================================
# WEATHER
# =============================================================================

class WeatherSnapshot(BaseModel):
    """Ambient conditions at the device location. Fetched per request, never stored."""
    temperature_c: float = Field(..., description="Air temperature in °C")
    humidity_pct: float = Field(..., description="Relative humidity %")
    description: str = Field(default="", description="Provider's condition text")


# =============================================================================
# MODEL VERDICT
# =============================================================================

class ModelVerdict(BaseModel):
    """
    Parsed reply from the language model.

    corrected is an object for single readings and usually an array for
    batch analysis; the model decides, so both are allowed here.
    """
    corrected: Union[dict[str, Any], list[Any]] = Field(default_factory=dict)
    flag: str = Field(default=ReadingFlag.NO_CHANGE.value)
    reason: str = Field(default="")

    @property
    def is_parse_error(self) -> bool:
        return self.flag == ReadingFlag.PARSE_ERROR.value


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class IngestResponse(BaseModel):
    """Returned by POST /api/data after a reading is committed."""
    message: str
    data: Reading
    flag: ReadingFlag
    reason: str


class AnalyzeResponse(BaseModel):
    """Returned by POST /api/analyze."""
    corrected: Union[dict[str, Any], list[Any]]
    source: str = Field(..., description="'gemini' or 'local-fallback'")
    flag: Optional[str] = None
    reason: Optional[str] = None
    weather: Optional[WeatherSnapshot] = None
