from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from loraplan.api.routes import get_terrain_provider
from loraplan.api.schemas import CoverageRequest
from loraplan.core.config import settings
from loraplan.core.errors import ProviderUnavailable
from loraplan.main import app
from loraplan.services.elevation import FailoverTerrainProvider, FlatTerrainProvider
from loraplan.services.cache import TTLCache


class FailingProvider:
    name = "failing"

    async def get_profile(self, start, end, sample_count):
        raise ProviderUnavailable("offline")


@pytest.fixture
def client():
    provider = FailoverTerrainProvider([FlatTerrainProvider(100.0)], TTLCache())
    app.dependency_overrides[get_terrain_provider] = lambda: provider
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def offline_client():
    app.dependency_overrides[get_terrain_provider] = lambda: FailingProvider()
    yield TestClient(app)
    app.dependency_overrides.clear()


LINK = {"lat1": 40.0, "lng1": -105.0, "lat2": 40.0, "lng2": -104.88, "tx_power": 1.0}


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Request-ID" in r.headers


def test_request_id_is_echoed(client):
    r = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"


def test_post_link_budget(client):
    r = client.post("/api/linkbudget", json=LINK)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["link_budget"]["is_viable"] is True
    assert body["terrain_source"] == "terrain"
    assert body["terrain_analysis"]["has_adequate_clearance"] is True
    assert len(body["elevation_profile"]) <= 10
    assert body["metadata"]["frequency_mhz"] == 915.0


def test_get_link_budget_with_options(client):
    params = dict(LINK, environment="urban", fade_margin=10, tx_antenna_height=20)
    r = client.get("/api/linkbudget", params=params)
    assert r.status_code == 200
    assert r.json()["link_budget"]["fade_margin_db"] == 10


def test_link_budget_without_terrain(offline_client):
    r = offline_client.post("/api/linkbudget", json=LINK)
    assert r.status_code == 200
    body = r.json()
    assert body["terrain_source"] == "estimated"
    assert body["warnings"]
    # two-point profile has no interior samples
    assert body["terrain_analysis"]["min_clearance_m"] is None


def test_link_budget_validation(client):
    r = client.post("/api/linkbudget", json=dict(LINK, tx_power=10))
    assert r.status_code == 422
    r = client.post("/api/linkbudget", json=dict(LINK, lat1=95))
    assert r.status_code == 422
    r = client.post("/api/linkbudget", json={"lat1": 40.0})
    assert r.status_code == 422


def test_link_budget_coincident_points(client):
    r = client.post("/api/linkbudget", json=dict(LINK, lat2=40.0, lng2=-105.0))
    assert r.status_code == 400
    assert "differ" in r.json()["detail"]


def test_coverage(client):
    r = client.post("/api/coverage", json={"lat": 45.0, "lng": -93.0, "power": 1.0, "resolution": 90, "max_range": 1})
    assert r.status_code == 200
    body = r.json()
    assert body["bearing_count"] == 4
    assert body["point_count"] == 4
    assert body["max_range_km"] == 1.0
    assert body["approximate"] is False
    assert [p["bearing_deg"] for p in body["polygon"]] == [0, 90, 180, 270]


def test_coverage_query_and_validation(client):
    r = client.get("/api/coverage", params={"lat": 45.0, "lng": -93.0, "power": 0.5, "resolution": 45, "max_range": 1})
    assert r.status_code == 200
    assert r.json()["transmitter"]["power"] == 0.5

    r = client.get("/api/coverage", params={"lat": 45.0, "lng": -93.0, "power": 1.0, "resolution": 2})
    assert r.status_code == 422


def test_coverage_offline_still_renders(offline_client):
    r = offline_client.post("/api/coverage", json={"lat": 45.0, "lng": -93.0, "power": 1.0, "resolution": 90, "max_range": 5})
    assert r.status_code == 200
    body = r.json()
    assert body["point_count"] >= 3
    assert body["approximate"] is True
    assert all(p["source"] == "estimated" for p in body["polygon"])


def test_elevation_profile(client):
    r = client.get("/api/elevation", params={"lat1": 40.0, "lng1": -105.0, "lat2": 40.1, "lng2": -105.0, "samples": 12})
    assert r.status_code == 200
    body = r.json()
    assert body["samples"] == 12
    assert body["profile"][0]["distance_km"] == 0.0
    assert body["total_distance_km"] == pytest.approx(11.12, abs=0.01)


def test_elevation_validation(client):
    r = client.get("/api/elevation", params={"lat1": 40.0, "lng1": -105.0, "lat2": 40.1, "lng2": -105.0, "samples": 500})
    assert r.status_code == 422


def test_elevation_unavailable(offline_client):
    r = offline_client.get("/api/elevation", params={"lat1": 40.0, "lng1": -105.0, "lat2": 40.1, "lng2": -105.0})
    assert r.status_code == 503


def test_elevation_stats(client):
    client.get("/api/elevation", params={"lat1": 40.0, "lng1": -105.0, "lat2": 40.1, "lng2": -105.0})
    r = client.get("/api/elevation/stats")
    assert r.status_code == 200
    body = r.json()
    assert body["provider"] == "failover"
    assert body["stats"]["active_provider"] == "flat"
    assert body["stats"]["cache"]["total"] == 1


def test_link_budget_loss_overrides(client):
    base = client.post("/api/linkbudget", json=LINK).json()["link_budget"]
    lossless = client.post(
        "/api/linkbudget", json=dict(LINK, tx_cable_loss=0, rx_cable_loss=0, connector_loss=0)
    ).json()["link_budget"]

    # default 1.5 dB cable + 0.5 dB connector at each end
    assert lossless["eirp_dbm"] == pytest.approx(base["eirp_dbm"] + 2.0)
    assert lossless["rx_signal_dbm"] == pytest.approx(base["rx_signal_dbm"] + 4.0)


def test_coverage_defaults_come_from_settings():
    request = CoverageRequest(lat=45.0, lng=-93.0, power=1.0)
    assert request.resolution == settings.COVERAGE_DEFAULT_RESOLUTION_DEG
    assert request.max_range == settings.COVERAGE_DEFAULT_MAX_RANGE_KM
