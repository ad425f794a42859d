"""
Service Tests
=============

HTTP endpoints of the relay service, with the pipeline swapped for an
in-memory one.
"""

import pytest
from fastapi.testclient import TestClient

from thermal_relay import main
from thermal_relay.analysis import AlertStateMachine, AnomalyClassifier, RangeThresholds
from thermal_relay.pipeline import Pipeline


class RecordingDelivery:
    def __init__(self):
        self.records = []

    @property
    def buffered_count(self):
        return 0

    def submit(self, record):
        self.records.append(record)

    def status(self):
        return {
            "buffered_count": 0,
            "in_flight": False,
            "delivered_count": len(self.records),
            "failed_attempts": 0,
            "dropped_count": 0,
        }


@pytest.fixture
def pipeline(monkeypatch):
    pipeline = Pipeline(
        reader=None,
        classifier=AnomalyClassifier(RangeThresholds(20.0, 70.0)),
        alert_machine=AlertStateMachine(),
        delivery=RecordingDelivery(),
    )
    monkeypatch.setattr(main, "_pipeline", pipeline)
    return pipeline


@pytest.fixture
def client():
    # No context manager: the lifespan (and the real pipe) is not started
    return TestClient(main.app)


class TestInfo:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "ThermalRelay"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestNotReady:
    """Endpoints that need the pipeline answer 503 without it."""

    @pytest.fixture(autouse=True)
    def no_pipeline(self, monkeypatch):
        monkeypatch.setattr(main, "_pipeline", None)

    def test_status(self, client):
        assert client.get("/status").status_code == 503

    def test_metrics(self, client):
        assert client.get("/metrics").status_code == 503

    def test_submit(self, client):
        response = client.post("/temperature-data", json={"temperature_data": [25.0] * 16})
        assert response.status_code == 503


class TestStatus:
    def test_idle_status(self, client, pipeline):
        data = client.get("/status").json()

        assert data["status"] == "idle"
        assert data["buffered_count"] == 0
        assert data["in_flight"] is False
        assert data["active_alerts"] == []
        assert "last_updated" in data

    def test_metrics(self, client, pipeline):
        data = client.get("/metrics").json()

        assert data["readings_processed"] == 0
        assert data["delivered_count"] == 0
        assert data["alert_states"] == {}


class TestSubmit:
    """Tests for POST /temperature-data."""

    def test_normal_reading(self, client, pipeline):
        response = client.post(
            "/temperature-data",
            json={"sensor_id": "sensor_3", "temperature_data": [25.0] * 16},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["analysis"]["is_abnormal"] is False
        assert [r.kind for r in pipeline.delivery.records] == ["temperature"]

    def test_abnormal_reading_raises_alert(self, client, pipeline):
        response = client.post(
            "/temperature-data",
            json={"sensor_id": "sensor_3", "temperature_data": [71.0] + [25.0] * 15},
        )

        assert response.json()["analysis"]["is_abnormal"] is True
        assert [r.kind for r in pipeline.delivery.records] == ["temperature", "alert"]
        assert client.get("/status").json()["active_alerts"] == ["sensor_3"]

    def test_wrong_pixel_count(self, client, pipeline):
        response = client.post("/temperature-data", json={"temperature_data": [25.0] * 15})
        assert response.status_code == 422

    @pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_value_rejected(self, client, pipeline, token):
        """Non-finite temperatures never reach the classifier or the queue."""
        values = ", ".join(["25.0"] * 15 + [token])
        response = client.post(
            "/temperature-data",
            content=f'{{"sensor_id": "sensor_3", "temperature_data": [{values}]}}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert pipeline.delivery.records == []
        assert pipeline.metrics.readings_processed == 0
