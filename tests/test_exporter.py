"""Tests for the Flask exporter endpoints."""

import json

import pytest
from prometheus_client import CONTENT_TYPE_LATEST

from conftest import SAMPLE
from owl.exporter import create_app
from owl.packet import PacketErrorKind, decode
from owl.telemetry import Telemetry


@pytest.fixture()
def telemetry():
    """Return a sink holding one decoded reading and one error."""
    t = Telemetry(prefix="owl")
    t.record(decode(SAMPLE))
    t.record_error(PacketErrorKind.MALFORMED)
    return t


@pytest.fixture()
def client(telemetry):
    """Yield a Flask test client backed by the populated sink."""
    app = create_app(telemetry)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


@pytest.fixture()
def empty_client():
    """Yield a Flask test client backed by an empty sink."""
    app = create_app(Telemetry(prefix="owl"))
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


class TestMetrics:
    """GET /metrics endpoint."""

    def test_plain_text(self, client):
        """Metrics are served as text/plain."""
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert resp.mimetype == "text/plain"
        assert resp.headers["Content-Type"] == CONTENT_TYPE_LATEST

    def test_contains_gauges(self, client):
        """Gauges from the last reading are present."""
        text = client.get("/metrics").get_data(as_text=True)
        lines = text.splitlines()
        assert "owl_power 305.0" in lines
        assert 'owl_errors_total{kind="malformed"} 1.0' in lines

    def test_empty(self, empty_client):
        """Before any reading no per-channel samples are served."""
        text = empty_client.get("/metrics").get_data(as_text=True)
        assert "owl_readings_total 0.0" in text.splitlines()
        assert "owl_channel_power{" not in text


class TestApiReading:
    """GET /api/reading endpoint."""

    def test_returns_last_reading(self, client):
        """The last reading is returned as JSON."""
        resp = client.get("/api/reading")
        assert resp.status_code == 200
        data = json.loads(resp.data)
        assert data["id"] == "443719005443"
        assert data["timestamp"] == "2017-11-06T06:48:31+00:00"
        assert data["battery"] == 100.0
        assert len(data["channels"]) == 3
        assert data["channels"][1] == {
            "power": 21.0, "power_units": "w",
            "energy": 3.01, "energy_units": "wh",
        }

    def test_no_reading_yet(self, empty_client):
        """404 with an error message before the first reading."""
        resp = empty_client.get("/api/reading")
        assert resp.status_code == 404
        assert "error" in json.loads(resp.data)


class TestApiStats:
    """GET /api/stats endpoint."""

    def test_counters(self, client):
        """Counters are returned without the last reading."""
        resp = client.get("/api/stats")
        assert resp.status_code == 200
        data = json.loads(resp.data)
        assert data["readings"] == 1
        assert data["errors"]["malformed"] == 1
        assert "last" not in data
