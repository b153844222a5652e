from __future__ import annotations

from pathlib import Path
from typing import List

import pytest
from fastapi.testclient import TestClient

from conftest import build_snapshot
from skyview import api
from skyview.errors import GeocodingError, UpstreamFetchError
from skyview.models import SnapshotMeta, SnapshotResult
from skyview.services.digest import DigestResult
from skyview.services.geocode import GeoResult
from skyview.storage import SubscriberStore


class StubWeatherService:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: List[tuple] = []

    def _result(self, name: str) -> SnapshotResult:
        if self.error is not None:
            raise self.error
        return SnapshotResult(
            data=build_snapshot(name),
            meta=SnapshotMeta(source="cache", fetched_at="2024-07-04T11:00:00.000+00:00", age_ms=1500),
        )

    async def get_snapshot(self) -> SnapshotResult:
        self.calls.append(("default",))
        return self._result("New York, NY")

    async def get_snapshot_by_coords(self, latitude, longitude, override_name=None) -> SnapshotResult:
        self.calls.append((latitude, longitude, override_name))
        return self._result(override_name or "Brooklyn, NY")


class StubGeocoder:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    async def search(self, query: str) -> List[GeoResult]:
        if self.error is not None:
            raise self.error
        return [GeoResult(name="Austin", latitude=30.2672, longitude=-97.7431, admin1="Texas", country="United States")]


class StubDigest:
    def __init__(self) -> None:
        self.forced: List[bool] = []

    async def send_daily(self, *, force: bool = False, now=None) -> DigestResult:
        self.forced.append(force)
        return DigestResult(sent=2, failed=1)


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> TestClient:
    monkeypatch.setattr(api, "weather_service", StubWeatherService())
    monkeypatch.setattr(api, "geocoder", StubGeocoder())
    monkeypatch.setattr(api, "store", SubscriberStore(tmp_path / "subscribers.json"))
    monkeypatch.setattr(api, "digest_sender", StubDigest())
    return TestClient(api.app)


def test_weather_defaults_to_default_location(client: TestClient):
    response = client.get("/weather")

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["location"]["name"] == "New York, NY"
    assert body["meta"] == {"source": "cache", "fetched_at": "2024-07-04T11:00:00.000+00:00", "age_ms": 1500}
    assert api.weather_service.calls == [("default",)]


def test_weather_by_coordinates_with_display_name(client: TestClient):
    response = client.get("/weather", params={"lat": "40.6782", "lon": "-73.9442", "name": "Home"})

    assert response.status_code == 200
    assert response.json()["data"]["location"]["name"] == "Home"
    assert api.weather_service.calls == [(40.6782, -73.9442, "Home")]


def test_unparseable_coordinates_fall_back_to_default(client: TestClient):
    response = client.get("/weather", params={"lat": "abc", "lon": "-73.9"})

    assert response.status_code == 200
    assert api.weather_service.calls == [("default",)]


def test_weather_upstream_failure_is_bad_gateway(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(api, "weather_service", StubWeatherService(error=UpstreamFetchError("points", "500")))

    response = client.get("/weather")

    assert response.status_code == 502
    assert response.json()["detail"] == "Unable to fetch weather data"


def test_geocode_results(client: TestClient):
    response = client.get("/geocode", params={"query": "Austin"})

    assert response.status_code == 200
    assert response.json()["results"][0] == {
        "name": "Austin",
        "admin1": "Texas",
        "country": "United States",
        "latitude": 30.2672,
        "longitude": -97.7431,
    }


def test_geocode_failure_is_bad_gateway(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(api, "geocoder", StubGeocoder(error=GeocodingError("down")))

    assert client.get("/geocode", params={"query": "Austin"}).status_code == 502


def test_subscribe_and_unsubscribe_flow(client: TestClient):
    missing = client.post("/subscribe", json={})
    assert missing.status_code == 400

    invalid = client.post("/subscribe", json={"email": "nope"})
    assert invalid.json() == {"ok": False, "message": "Invalid email"}

    created = client.post(
        "/subscribe",
        json={
            "email": "Reader@Example.com",
            "location": {"name": "Austin, TX", "latitude": 30.2672, "longitude": -97.7431},
            "unit": "C",
            "timezone": "America/Chicago",
        },
    )
    assert created.json() == {"ok": True, "message": "Subscribed"}

    subscriber = api.store.list()[0]
    assert subscriber.email == "reader@example.com"
    assert subscriber.location.name == "Austin, TX"

    assert client.get("/unsubscribe").status_code == 400
    assert client.get("/unsubscribe", params={"token": "unknown"}).status_code == 404
    removed = client.get("/unsubscribe", params={"token": subscriber.token})
    assert removed.status_code == 200
    assert removed.json() == {"ok": True}
    assert api.store.list() == []


def test_subscribe_without_coordinates_ignores_location(client: TestClient):
    client.post("/subscribe", json={"email": "reader@example.com", "location": {"name": "Somewhere"}})

    assert api.store.list()[0].location is None


def test_daily_notifications_respect_force_flag(client: TestClient):
    response = client.post("/notifications/daily", params={"force": "1"})
    client.post("/notifications/daily")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "sent": 2, "failed": 1}
    assert api.digest_sender.forced == [True, False]
