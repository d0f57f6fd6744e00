from collections.abc import Iterator
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from airsense.main import create_app
from airsense.models import WeatherSnapshot
from airsense.services import ReadingStore

from .fakes import FakeGeminiClient, FakeWeatherService, make_config, make_model_client


@pytest.fixture
def store() -> ReadingStore:
    return ReadingStore()


@pytest.fixture
def weather() -> FakeWeatherService:
    return FakeWeatherService(WeatherSnapshot(temperature_c=10.0, humidity_pct=80.0, description="light rain"))


@pytest.fixture
def make_client(store: ReadingStore, weather: FakeWeatherService) -> Iterator[Any]:
    """Factory building a TestClient around fresh services."""
    clients: list[TestClient] = []

    def _make(fake_gemini: Optional[FakeGeminiClient] = None, **config_overrides: Any) -> TestClient:
        app = create_app(
            config=make_config(**config_overrides),
            store=store,
            weather_service=weather,  # type: ignore[arg-type]
            model_client=make_model_client(fake_gemini, weather),
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
