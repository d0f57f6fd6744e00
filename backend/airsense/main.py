"""
AirSense Telemetry - Backend API
================================
FastAPI application that ingests air-quality telemetry from ESP8266/ESP32
devices, has Gemini review each reading, and serves the results to the
dashboard.

ARCHITECTURE:

    [ESP8266 / ESP32] --POST /api/data--> [This Backend] <--GET-- [Dashboard]
                                                |
                              +-----------------+-----------------+
                              v                                   v
                      [Google Gemini]                    [OpenWeatherMap]
                  (anomaly review/correction)            (ambient conditions)

    No Gemini? The local fallback corrector (median + clamp + weather blend)
    takes over - or, in strict mode, ingestion is refused with 503.

HOW TO RUN:
    # Install
    pip install -e ".[test]"

    # Configure (GOOGLE_API_KEY, OPENWEATHER_API_KEY, INGEST_MODE, ...)
    cp .env.example .env

    # Run the server
    uvicorn airsense.main:app --reload --port 3000
    # or
    python -m airsense.main

API DOCUMENTATION:
    After starting the server, visit:
    - Swagger UI: http://localhost:3000/docs
    - ReDoc: http://localhost:3000/redoc
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from airsense.config import Config
from airsense.routers import analyze_router, data_router
from airsense.services import IngestionService, ModelClient, ReadingStore, WeatherService


# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


# =============================================================================
# APPLICATION LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    STARTUP:
        Print which integrations are configured
    SHUTDOWN:
        Close the weather HTTP client
    """
    config: Config = app.state.config
    service: IngestionService = app.state.ingestion_service

    logger.info("=" * 60)
    logger.info("AIRSENSE TELEMETRY - Starting Backend")
    logger.info("=" * 60)
    logger.info(f"Gemini: {'configured (' + config.GEMINI_MODEL + ')' if service.model_client.is_configured else 'NOT configured'}")
    logger.info(f"OpenWeather: {'configured' if service.weather_service.is_configured else 'NOT configured'}")
    logger.info(f"Ingest mode: {config.INGEST_MODE.value}")
    logger.info(f"Empty latest policy: {config.EMPTY_LATEST_POLICY.value}")
    logger.info(f"History window: {config.HISTORY_WINDOW}")
    if config.default_coordinates:
        logger.info(f"Default coordinates: {config.default_coordinates}")
    logger.info(f"CORS origins: {len(config.CORS_ORIGINS)} configured")

    yield  # Application runs here

    logger.info("Shutting down...")
    await service.weather_service.close()
    logger.info("Shutdown complete")


# =============================================================================
# ERROR HANDLERS - every failure body is {"error": "..."}
# =============================================================================

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        logger.error(f"Bad JSON from client: {errors}")
        return JSONResponse(status_code=400, content={"error": "Invalid JSON format"})

    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in errors
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request - {details}"})


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# CREATE FASTAPI APPLICATION
# =============================================================================

def create_app(
    config: Optional[Config] = None,
    store: Optional[ReadingStore] = None,
    weather_service: Optional[WeatherService] = None,
    model_client: Optional[ModelClient] = None,
) -> FastAPI:
    """
    Build the app and wire its services.

    Anything not passed in is built from config. Tests pass fakes.
    """
    config = config or Config()

    weather_service = weather_service or WeatherService(
        api_key=config.OPENWEATHER_API_KEY,
        request_timeout=config.WEATHER_TIMEOUT,
    )
    model_client = model_client or ModelClient(
        api_key=config.GOOGLE_API_KEY,
        model_name=config.GEMINI_MODEL,
        request_timeout=config.MODEL_TIMEOUT,
        weather_service=weather_service,
    )
    ingestion_service = IngestionService(
        store=store if store is not None else ReadingStore(),
        model_client=model_client,
        weather_service=weather_service,
        config=config,
    )

    app = FastAPI(
        title="AirSense Telemetry API",
        description="""
## Overview

Backend for ESP8266/ESP32 air-quality monitors. Devices post readings,
Gemini reviews them for anomalies, and the dashboard reads the results.

## How It Works

1. **Device posts** `POST /api/data` with temperature, humidity, mq135, pm25, pm10
2. **Review** - Gemini compares it with recent history and the weather
3. **Fallback** - if Gemini can't be reached, a local statistical corrector runs
4. **Dashboard reads** `GET /api/data/latest` and `GET /api/data/all`
        """,
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.config = config
    app.state.ingestion_service = ingestion_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(data_router)
    app.include_router(analyze_router)

    @app.get(
        "/",
        summary="API Information",
        description="Get basic API information and available endpoints."
    )
    async def root():
        return {
            "name": "AirSense Telemetry API",
            "version": "1.0.0",
            "documentation": {
                "swagger": "/docs",
                "redoc": "/redoc",
                "openapi": "/openapi.json"
            },
            "endpoints": {
                "ingest": "POST /api/data",
                "latest": "GET /api/data/latest",
                "all": "GET /api/data/all",
                "analyze": "POST /api/analyze",
                "health": "GET /health"
            }
        }

    @app.get(
        "/health",
        summary="Health Check",
        description="Check if the backend is running and which integrations are configured."
    )
    async def health():
        return {
            "status": "healthy",
            "model_configured": ingestion_service.model_client.is_configured,
            "weather_configured": ingestion_service.weather_service.is_configured,
            "ingest_mode": config.INGEST_MODE.value,
            "readings_stored": len(ingestion_service.store),
        }

    return app


_config = Config()
configure_logging(_config.LOG_LEVEL)
app = create_app(_config)


if __name__ == "__main__":
    uvicorn.run(
        "airsense.main:app",
        host="0.0.0.0",
        port=_config.PORT,
    )
