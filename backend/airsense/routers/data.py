"""
Data API Router
===============

The endpoints devices and the dashboard use.

ALL ENDPOINTS:
-------------
POST   /api/data          - Device posts a reading (optional ?lat=&lon=)
GET    /api/data          - Latest reading (404 or placeholder when empty)
GET    /api/data/latest   - Latest reading (404 when empty)
GET    /api/data/all      - Every stored reading, oldest first (404 when empty)

Example device request:
    POST /api/data?lat=41.29&lon=-82.21
    {"temperature": 24.5, "humidity": 51, "mq135": 182, "pm25": 12, "pm10": 20}
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from airsense.config import EmptyLatestPolicy
from airsense.errors import TelemetryError
from airsense.models import IngestResponse, Reading
from airsense.routers.deps import get_ingestion_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/data", tags=["data"])

NO_DATA = "No data available yet"


@router.post("", response_model=IngestResponse)
async def ingest_reading(
    body: Any = Body(..., description="{temperature, humidity, mq135, pm25, pm10}"),
    lat: Optional[float] = Query(None, description="Device latitude"),
    lon: Optional[float] = Query(None, description="Device longitude"),
    service=Depends(get_ingestion_service),
):
    """
    Accept a reading from a device.

    Values may be numbers or numeric strings. The reading is reviewed by
    Gemini (or the local corrector) before it's stored.

    **Errors**
    - 400: a field is missing or not a number
    - 502: Gemini answered with something unusable (strict mode)
    - 503: Gemini isn't configured (strict mode)
    """
    try:
        reading = await service.ingest(body, lat=lat, lon=lon)
    except TelemetryError as e:
        logger.warning(f"Rejected reading ({e.status_code}): {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return IngestResponse(
        message="Data received successfully",
        data=reading,
        flag=reading.flag,
        reason=reading.reason,
    )


@router.get("", response_model=Reading)
async def get_data(service=Depends(get_ingestion_service)):
    """
    Latest reading.

    With EMPTY_LATEST_POLICY=placeholder an empty store returns a zero-valued
    reading instead of 404.
    """
    latest = service.store.latest
    if latest is not None:
        return latest
    if service.config.EMPTY_LATEST_POLICY == EmptyLatestPolicy.PLACEHOLDER:
        return Reading.placeholder()
    raise HTTPException(status_code=404, detail=NO_DATA)


@router.get("/latest", response_model=Reading)
async def get_latest(service=Depends(get_ingestion_service)):
    """Latest reading, 404 if nothing has been stored."""
    latest = service.store.latest
    if latest is None:
        raise HTTPException(status_code=404, detail=NO_DATA)
    return latest


@router.get("/all", response_model=list[Reading])
async def get_all(service=Depends(get_ingestion_service)):
    """Every stored reading, oldest first. 404 if there are none."""
    history = service.store.history()
    if not history:
        raise HTTPException(status_code=404, detail=NO_DATA)
    return history
