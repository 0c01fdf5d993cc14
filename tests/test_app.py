import random
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.roster import StaticRosterStore
from services.engine import SimulationEngine, build_engine
from services.recipients import RecipientResolver
from settings import get_settings


@pytest.fixture
def engines(monkeypatch, recording_mailer) -> Iterator[List[SimulationEngine]]:
    built: List[SimulationEngine] = []

    def build_test_engine(settings=None) -> SimulationEngine:
        engine = build_engine(
            settings,
            mailer=recording_mailer,
            resolver=RecipientResolver(StaticRosterStore()),
            rng=random.Random(3),
        )
        built.append(engine)
        return engine

    monkeypatch.setenv("SIMULATION_TICK_SECONDS", "3600")
    get_settings.cache_clear()
    monkeypatch.setattr("app.main.build_engine", build_test_engine)
    yield built
    get_settings.cache_clear()


@pytest.fixture
def api_client(engines) -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as client:
        yield client


def test_health_endpoints(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert api_client.get("/").json()["status"] == "ok"


def test_start_status_stop_cycle(api_client: TestClient) -> None:
    status = api_client.get("/simulation/status").json()
    assert status["success"] is True
    assert status["is_running"] is False
    assert status["tick_count"] == 0

    started = api_client.post("/simulation/start").json()
    assert started == {
        "success": True,
        "is_running": True,
        "changed": True,
        "message": "Simulation started.",
    }
    again = api_client.post("/simulation/start").json()
    assert again["changed"] is False
    assert again["is_running"] is True

    status = api_client.get("/simulation/status").json()
    assert status["tick_count"] == 1
    assert len(status["recent_readings"]) == 3
    assert {sensor["total_readings"] for sensor in status["sensors"]} == {1}
    assert status["source"]["source"] == "simulated"

    stopped = api_client.post("/simulation/stop").json()
    assert stopped["changed"] is True
    assert stopped["is_running"] is False
    assert api_client.post("/simulation/stop").json()["changed"] is False


def test_lifespan_stops_running_engine(engines) -> None:
    with TestClient(create_app()) as client:
        client.post("/simulation/start")
        engine = engines[-1]
        assert engine.is_running is True

    assert engine.is_running is False


def test_sensor_listing_and_readings(api_client: TestClient) -> None:
    sensors = api_client.get("/sensors").json()["sensors"]
    assert [sensor["id"] for sensor in sensors] == [
        "SENSOR_001_MAJULI_V1",
        "SENSOR_002_MAJULI_V2",
        "SENSOR_003_MAJULI_V3",
    ]

    api_client.post("/simulation/start")
    readings = api_client.get("/sensors/SENSOR_002_MAJULI_V2/readings", params={"limit": 5}).json()
    assert [reading["sensor_id"] for reading in readings["readings"]] == ["SENSOR_002_MAJULI_V2"]
    assert len(api_client.get("/readings").json()["readings"]) == 3

    missing = api_client.get("/sensors/SENSOR_404/readings")
    assert missing.status_code == 404
    assert "SENSOR_404" in missing.json()["detail"]


def test_critical_test_alert_and_acknowledgement(api_client: TestClient, engines) -> None:
    response = api_client.post(
        "/alerts/test", json={"sensor_id": "SENSOR_001_MAJULI_V1", "preset": "critical"}
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert [finding["kind"] for finding in payload["findings"]] == [
        "critical",
        "critical",
        "critical",
        "warning",
    ]
    assert payload["alert"]["severity"] == "critical"
    assert payload["dispatch"]["recipient_count"] == 19
    assert len(engines[-1].mailer.sent) == 2

    alerts = api_client.get("/alerts", params={"severity": "critical"}).json()["alerts"]
    assert [alert["id"] for alert in alerts] == [payload["alert"]["id"]]

    ack = api_client.patch(
        f"/alerts/{payload['alert']['id']}/acknowledge",
        json={"acknowledged_by": "district-health-officer", "notes": "team dispatched"},
    )
    assert ack.status_code == 200
    assert ack.json()["alert"]["status"] == "acknowledged"
    assert ack.json()["alert"]["acknowledged_by"] == "district-health-officer"

    missing = api_client.patch("/alerts/alert_gone/acknowledge", json={"acknowledged_by": "x"})
    assert missing.status_code == 404


def test_explicit_reading_test_alert(api_client: TestClient) -> None:
    payload = api_client.post(
        "/alerts/test",
        json={"sensor_id": "SENSOR_003_MAJULI_V3", "reading": {"connectivity": "offline"}},
    ).json()

    assert [finding["kind"] for finding in payload["findings"]] == ["technical"]
    assert payload["alert"]["severity"] == "warning"
    assert payload["dispatch"] == {"success": True, "recipient_count": 0, "sends": []}


def test_test_alert_validation(api_client: TestClient) -> None:
    assert api_client.post("/alerts/test", json={"sensor_id": "SENSOR_001_MAJULI_V1"}).status_code == 422
    assert (
        api_client.post("/alerts/test", json={"sensor_id": "nope", "preset": "warning"}).status_code
        == 404
    )


def test_daily_report(api_client: TestClient, engines) -> None:
    api_client.post("/alerts/test", json={"sensor_id": "SENSOR_001_MAJULI_V1", "preset": "warning"})

    report = api_client.post("/reports/daily").json()

    assert report["success"] is True
    assert report["overall_status"] == "warning"
    assert report["stats"]["warning_alerts"] == 1
    assert len(report["recipients"]) == 6
    assert report["send_result"]["recipient_count"] == 8

    bad = api_client.post(
        "/reports/daily",
        json={"window_start": "2025-07-15T12:00:00Z", "window_end": "2025-07-14T12:00:00"},
    )
    assert bad.status_code == 400


def test_officials_preview(api_client: TestClient) -> None:
    officials = api_client.get("/officials", params={"severity": "warning", "district": "Nowhere"}).json()

    assert sorted(official["id"] for official in officials["officials"]) == [
        "static-1",
        "static-2",
        "static-4",
        "static-6",
        "static-7",
    ]
