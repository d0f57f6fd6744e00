from types import SimpleNamespace

from fastapi.testclient import TestClient

from airsense.config import EmptyLatestPolicy, IngestMode
from airsense.main import create_app
from airsense.routers import get_ingestion_service

from .fakes import (
    VALID_BODY,
    FakeGeminiClient,
    make_config,
    make_model_client,
    text_response,
    verdict_response,
)


def test_post_with_non_numeric_field_returns_400(make_client, store) -> None:
    client = make_client(INGEST_MODE=IngestMode.LENIENT)

    response = client.post("/api/data", json={**VALID_BODY, "temperature": "abc"})

    assert response.status_code == 400
    assert "error" in response.json()
    assert store.latest is None


def test_post_with_malformed_json_returns_400(make_client) -> None:
    client = make_client(INGEST_MODE=IngestMode.LENIENT)

    response = client.post(
        "/api/data",
        content=b'{"temperature": 24.5,',
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid JSON format"}


def test_strict_mode_without_model_returns_503_and_stores_nothing(make_client, store) -> None:
    client = make_client(INGEST_MODE=IngestMode.STRICT)

    response = client.post("/api/data", json=VALID_BODY)

    assert response.status_code == 503
    assert response.json() == {"error": "Model correction is not configured"}
    assert store.latest is None
    assert client.get("/api/data/latest").status_code == 404


def test_strict_mode_unusable_model_reply_returns_502(make_client, store) -> None:
    client = make_client(FakeGeminiClient(text_response("nope")), INGEST_MODE=IngestMode.STRICT)

    response = client.post("/api/data", json=VALID_BODY)

    assert response.status_code == 502
    assert "error" in response.json()
    assert len(store) == 0


def test_model_corrected_reading_is_committed_and_served(make_client) -> None:
    fake = FakeGeminiClient(verdict_response({"pm25": 11.0}, flag="anomaly_detected", reason="pm spike"))
    client = make_client(fake)

    response = client.post("/api/data?lat=41.29&lon=-82.21", json={**VALID_BODY, "pm25": "900"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Data received successfully"
    assert body["flag"] == "anomaly_detected"
    assert body["reason"] == "pm spike"
    assert body["data"]["pm25"] == 11.0
    assert body["data"]["mq135"] == 182.0
    assert body["data"]["source"] == "model-corrected"

    latest = client.get("/api/data/latest").json()
    assert latest == body["data"]
    assert client.get("/api/data").json() == body["data"]
    assert client.get("/api/data/all").json() == [body["data"]]


def test_lenient_mode_commits_local_fallback(make_client) -> None:
    client = make_client(INGEST_MODE=IngestMode.LENIENT)

    first = client.post("/api/data", json=VALID_BODY)
    second = client.post("/api/data", json={**VALID_BODY, "humidity": -5})

    assert first.status_code == 200
    assert second.json()["data"]["humidity"] == 0.0
    assert second.json()["data"]["source"] == "local-fallback"
    assert len(client.get("/api/data/all").json()) == 2


def test_lone_coordinate_returns_400(make_client) -> None:
    client = make_client(INGEST_MODE=IngestMode.LENIENT)

    response = client.post("/api/data?lat=41.0", json=VALID_BODY)

    assert response.status_code == 400


def test_queries_before_any_ingestion(make_client) -> None:
    client = make_client()

    for path in ("/api/data", "/api/data/latest", "/api/data/all"):
        response = client.get(path)
        assert response.status_code == 404
        assert response.json() == {"error": "No data available yet"}


def test_placeholder_policy_for_empty_get_data(make_client) -> None:
    client = make_client(EMPTY_LATEST_POLICY=EmptyLatestPolicy.PLACEHOLDER)

    response = client.get("/api/data")

    assert response.status_code == 200
    body = response.json()
    assert body["temperature"] == 0.0
    assert body["reason"] == "No data available yet"
    assert client.get("/api/data/latest").status_code == 404


def test_analyze_falls_back_locally(make_client, store) -> None:
    client = make_client()

    response = client.post(
        "/api/analyze?lat=41.29&lon=-82.21",
        json=[VALID_BODY, {**VALID_BODY, "temperature": 45}],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "local-fallback"
    assert body["corrected"][1]["temperature"] == 27.5
    assert body["weather"]["description"] == "light rain"
    assert "flag" not in body
    assert len(store) == 0


def test_analyze_uses_model_when_available(make_client) -> None:
    fake = FakeGeminiClient(verdict_response([VALID_BODY], flag="no_change", reason="all good"))
    client = make_client(fake)

    response = client.post("/api/analyze", json=[VALID_BODY])

    assert response.status_code == 200
    assert response.json() == {
        "corrected": [VALID_BODY],
        "source": "gemini",
        "flag": "no_change",
        "reason": "all good",
    }


def test_analyze_rejects_empty_array(make_client) -> None:
    client = make_client()

    response = client.post("/api/analyze", json=[])

    assert response.status_code == 400
    assert "error" in response.json()


def test_health_reports_configuration(make_client) -> None:
    client = make_client(INGEST_MODE=IngestMode.LENIENT)

    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["model_configured"] is False
    assert body["ingest_mode"] == "lenient"
    assert body["readings_stored"] == 0


def test_shutdown_closes_weather_client(weather) -> None:
    app = create_app(config=make_config(), weather_service=weather, model_client=make_model_client(None, weather))

    with TestClient(app) as client:
        assert client.get("/").status_code == 200

    assert weather.closed


def test_routes_use_the_service_create_app_wired(make_client, store) -> None:
    client = make_client(INGEST_MODE=IngestMode.LENIENT)

    assert get_ingestion_service(SimpleNamespace(app=client.app)).store is store
    client.post("/api/data", json=VALID_BODY)
    assert len(store) == 1
