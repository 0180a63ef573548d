import inspect
import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
import api.server as server
from dashboard_engine import SessionRegistry
from providers.live import TTLCache

client = TestClient(server.app)

READINGS = {
    "aqi": 42, "pm25": 8.0, "no2": None, "o3": None,
    "temp": 18.0, "temp_unit": "C", "rh": 60,
    "wind_speed_ms": 4.0, "wind_gust_ms": 6.0,
    "rain1h": 0.0, "rain24h": 3.0, "rain7d": 12.0, "flood_intensity3h": 0.5,
    "fire_events": 0, "nearest_fire_km": None, "last_fire_date": None,
    "vpd": 0.83, "water_index_pct": None, "water_level_label": None,
}


class FakeProvider:
    def __init__(self):
        self.cache = TTLCache(60)
        self.calls = []

    def fetch_live(self, lat, lng):
        self.calls.append((lat, lng))
        return dict(READINGS)


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch):
    fake = FakeProvider()
    monkeypatch.setattr(server, "provider", fake)
    monkeypatch.setattr(server, "sessions", SessionRegistry(max_sessions=4))
    return fake


def test_health_check():
    """Health endpoint returns 200 OK and expected JSON."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data
    assert data["sessions"] == 0
    assert "cache_entries" in data


def test_config_exposes_palette_and_stability():
    data = client.get("/api/config").json()
    assert data["colors"]["na"] == "#6b7280"
    assert data["stability"]["ready_min_known"] == 3
    assert "airInfo" in data["indicators"]


def test_live_requires_coordinates():
    response = client.get("/api/live")
    assert response.status_code == 400
    assert response.json()["error"] == "lat/lng required"
    response = client.get("/api/live", params={"lat": 95, "lng": 10})
    assert response.status_code == 400


def test_live_returns_readings(isolated_state):
    response = client.get("/api/live", params={"lat": 23.81, "lng": 90.41})
    assert response.status_code == 200
    assert response.json()["aqi"] == 42
    assert isolated_state.calls == [(23.81, 90.41)]


def test_dashboard_builds_stabilised_snapshot():
    response = client.get("/api/dashboard", params={"lat": 23.81, "lng": 90.41})
    assert response.status_code == 200
    data = response.json()
    assert data["ready"] is True
    assert data["committed"]["airInfo"]["level"] == "low"
    assert data["display"]["waterInfo"]["label"] == "Unknown"
    assert data["readings"]["rain7d"] == 12.0
    assert len(data["actions"]) == 10

    again = client.get("/api/dashboard", params={"lat": 23.8101, "lng": 90.4099}).json()
    assert again["refreshes"] == 2
    assert len(server.sessions) == 1


def test_classify_accepts_strings_and_missing_values():
    response = client.post("/api/classify", json={"aqi": "120", "rain1h": 12, "temp": "n/a"})
    assert response.status_code == 200
    bands = response.json()["bands"]
    assert bands["airInfo"]["level"] == "high"
    assert bands["rainInfo"]["level"] == "high"
    assert bands["tempInfo"]["level"] == "na"


def test_stabilize_debounces_per_session():
    low = {"level": "low", "label": "Low", "color": "#10b981"}
    high = {"level": "high", "label": "High", "color": "#ef4444"}

    first = client.post("/api/stabilize", json={"session_id": "s1", "sample": {"rainInfo": low}}).json()
    assert first["committed"]["rainInfo"]["level"] == "low"
    second = client.post("/api/stabilize", json={"session_id": "s1", "sample": {"rainInfo": high}}).json()
    assert second["committed"]["rainInfo"]["level"] == "low"
    third = client.post("/api/stabilize", json={"session_id": "s1", "sample": {"rainInfo": high}}).json()
    assert third["committed"]["rainInfo"]["level"] == "high"

    other = client.post("/api/stabilize", json={"session_id": "s2", "sample": {"rainInfo": high}}).json()
    assert other["committed"]["rainInfo"]["level"] == "high"


def test_stabilize_rejects_blank_session():
    response = client.post("/api/stabilize", json={"session_id": " ", "sample": {}})
    assert response.status_code == 400


def test_drop_session():
    client.post("/api/stabilize", json={"session_id": "gone", "sample": {}})
    assert client.delete("/api/session/gone").status_code == 200
    assert client.delete("/api/session/gone").status_code == 404


def test_validation_error_returns_422():
    response = client.post("/api/stabilize", json={"sample": {}})
    assert response.status_code == 422


def test_stabilize_rejects_unknown_level():
    """An unknown level is a 422, and nothing lands in the session."""
    bogus = {"level": "bogus", "label": "Bogus", "color": "#000000"}
    sample = {"airInfo": bogus, "rainInfo": bogus, "tempInfo": bogus}
    response = client.post("/api/stabilize", json={"session_id": "s1", "sample": sample})
    assert response.status_code == 422
    assert len(server.sessions) == 0


def test_stabilize_accepts_level_only_bands():
    sample = {"airInfo": {"level": "low"}, "rainInfo": {"level": "high"}, "tempInfo": {"level": "medium"}}
    data = client.post("/api/stabilize", json={"session_id": "s1", "sample": sample}).json()
    assert data["ready"] is True
    assert data["committed"]["rainInfo"]["level"] == "high"


def test_network_endpoints_run_in_threadpool():
    """Endpoints that block on upstream HTTP are plain functions, not coroutines."""
    assert not inspect.iscoroutinefunction(server.get_live)
    assert not inspect.iscoroutinefunction(server.get_dashboard)
