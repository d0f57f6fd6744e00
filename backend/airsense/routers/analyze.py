"""
Analyze API Router
==================

POST /api/analyze - review a batch of readings without storing them.

Example:
    POST /api/analyze?lat=41.29&lon=-82.21
    [
        {"temperature": 22.1, "humidity": 48, "mq135": 170, "pm25": 9, "pm10": 15},
        {"temperature": null, "humidity": 47, "mq135": 172, "pm25": 10, "pm10": 16}
    ]

Response:
    {
        "corrected": [...],
        "source": "gemini" | "local-fallback",
        "flag": "...",          (gemini only)
        "reason": "...",        (gemini only)
        "weather": {...}        (when coordinates and a weather key are available)
    }
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from airsense.errors import TelemetryError
from airsense.models import AnalyzeResponse
from airsense.routers.deps import get_ingestion_service

router = APIRouter(prefix="/api", tags=["analyze"])


@router.post("/analyze", response_model=AnalyzeResponse, response_model_exclude_none=True)
async def analyze_readings(
    body: Any = Body(..., description="Non-empty array of readings"),
    lat: Optional[float] = Query(None, description="Latitude for weather context"),
    lon: Optional[float] = Query(None, description="Longitude for weather context"),
    service=Depends(get_ingestion_service),
):
    """Run a batch through Gemini, or the local corrector if Gemini isn't available."""
    try:
        return await service.analyze(body, lat=lat, lon=lon)
    except TelemetryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
