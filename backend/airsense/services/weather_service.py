"""
Weather Service
===============

Fetches current conditions from OpenWeatherMap so readings can be checked
against the outside world.

THE DATA FLOW:
-------------
    POST /api/data?lat=41.29&lon=-82.21
            |
            | GET /data/2.5/weather?lat=..&lon=..&units=metric
            v
    [api.openweathermap.org]
            |
            | main.temp, main.humidity, weather[0].description
            v
    [WeatherSnapshot]

One rule above all: this service NEVER raises to the caller. Missing API key,
timeouts, HTTP errors and weird bodies all come back as None and the reading
is processed without weather context.

API Documentation: https://openweathermap.org/current
"""

import asyncio
import logging
from typing import Optional

import httpx

from airsense.models import WeatherSnapshot

logger = logging.getLogger(__name__)


class WeatherService:
    """
    Thin async client for the OpenWeatherMap current-weather endpoint.

    HOW TO USE:
    ----------
    service = WeatherService(api_key="...")
    snapshot = await service.fetch_current(41.29, -82.21)
    if snapshot:
        print(snapshot.temperature_c)
    await service.close()
    """

    API_URL = "https://api.openweathermap.org/data/2.5/weather"

    def __init__(
        self,
        api_key: Optional[str],
        request_timeout: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Set up the service.

        Args:
            api_key: OpenWeatherMap key. None means every fetch returns None.
            request_timeout: Seconds before a request is abandoned (default 5)
            http_client: Pre-built client (tests pass one with a mock transport)
        """
        self.api_key = api_key
        self.request_timeout = request_timeout
        self.http_client = http_client or httpx.AsyncClient(timeout=request_timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch_current(self, lat: float, lon: float) -> Optional[WeatherSnapshot]:
        """
        Get current conditions at (lat, lon).

        Returns:
            A WeatherSnapshot, or None if anything went wrong
        """
        if not self.api_key:
            logger.warning("OpenWeather API key not configured; skipping weather lookup")
            return None

        params = {
            "lat": lat,
            "lon": lon,
            "units": "metric",
            "appid": self.api_key,
        }

        # httpx timeouts are per phase; wait_for caps the whole request
        try:
            payload = await asyncio.wait_for(
                self._get_json(params),
                timeout=self.request_timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            logger.error(f"Weather request for ({lat}, {lon}) timed out")
            return None
        except httpx.HTTPStatusError as e:
            logger.error(f"Weather API responded with {e.response.status_code}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Weather fetch failed: {e}")
            return None

        snapshot = self.parse_response(payload)
        if snapshot:
            logger.info(
                f"Weather fetched: temp={snapshot.temperature_c}°C, "
                f"humidity={snapshot.humidity_pct}%"
            )
        return snapshot

    async def _get_json(self, params: dict):
        response = await self.http_client.get(self.API_URL, params=params)
        response.raise_for_status()
        return response.json()

    def parse_response(self, payload) -> Optional[WeatherSnapshot]:
        """
        Pull the fields we care about out of the provider's JSON.

        Example input (trimmed):
            {
                "weather": [{"description": "light rain"}],
                "main": {"temp": 11.2, "humidity": 87}
            }
        """
        if not isinstance(payload, dict):
            logger.error("Weather API returned a non-object body")
            return None

        main = payload.get("main") or {}
        conditions = payload.get("weather") or []
        description = ""
        if conditions and isinstance(conditions[0], dict):
            description = str(conditions[0].get("description", ""))

        try:
            return WeatherSnapshot(
                temperature_c=float(main["temp"]),
                humidity_pct=float(main["humidity"]),
                description=description,
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Weather API body missing temperature/humidity: {e}")
            return None

    async def close(self):
        """Called when the server shuts down."""
        await self.http_client.aclose()
