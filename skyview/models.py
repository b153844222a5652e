from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

SOURCE_LIVE = "live"
SOURCE_CACHE = "cache"
SOURCE_STALE = "stale"


@dataclass(frozen=True)
class Location:
    name: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class CurrentConditions:
    """Latest observed conditions, in imperial units.

    Any reading can be missing because stations omit sensors freely; only the
    condition text always carries a value.
    """

    condition: str
    temperature_f: Optional[float] = None
    feels_like_f: Optional[float] = None
    humidity: Optional[float] = None
    wind_speed_mph: Optional[float] = None
    wind_gust_mph: Optional[float] = None
    wind_direction: Optional[str] = None
    dew_point_f: Optional[float] = None
    pressure_inhg: Optional[float] = None
    visibility_miles: Optional[float] = None
    observed_at: Optional[str] = None


@dataclass(frozen=True)
class DailyForecast:
    date: str
    label: str
    high_f: Optional[float] = None
    low_f: Optional[float] = None
    summary: str = ""
    icon: str = ""


@dataclass(frozen=True)
class HourlyForecast:
    time: str
    temperature_f: Optional[float] = None
    summary: str = ""
    icon: str = ""
    precip_chance: Optional[float] = None
    humidity: Optional[float] = None


@dataclass(frozen=True)
class UpdatedAt:
    forecast: Optional[str] = None
    hourly: Optional[str] = None


@dataclass(frozen=True)
class WeatherSnapshot:
    """Normalized weather for one location, merged from several NWS resources."""

    location: Location
    current: CurrentConditions
    daily: Tuple[DailyForecast, ...] = ()
    hourly: Tuple[HourlyForecast, ...] = ()
    updated_at: UpdatedAt = field(default_factory=UpdatedAt)

    def with_location_name(self, name: Optional[str]) -> "WeatherSnapshot":
        if not name:
            return self
        return replace(self, location=replace(self.location, name=name))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": {
                "name": self.location.name,
                "latitude": self.location.latitude,
                "longitude": self.location.longitude,
            },
            "current": {
                "temperature_f": self.current.temperature_f,
                "feels_like_f": self.current.feels_like_f,
                "condition": self.current.condition,
                "humidity": self.current.humidity,
                "wind_speed_mph": self.current.wind_speed_mph,
                "wind_gust_mph": self.current.wind_gust_mph,
                "wind_direction": self.current.wind_direction,
                "dew_point_f": self.current.dew_point_f,
                "pressure_inhg": self.current.pressure_inhg,
                "visibility_miles": self.current.visibility_miles,
                "observed_at": self.current.observed_at,
            },
            "daily": [
                {
                    "date": day.date,
                    "label": day.label,
                    "high_f": day.high_f,
                    "low_f": day.low_f,
                    "summary": day.summary,
                    "icon": day.icon,
                }
                for day in self.daily
            ],
            "hourly": [
                {
                    "time": hour.time,
                    "temperature_f": hour.temperature_f,
                    "summary": hour.summary,
                    "icon": hour.icon,
                    "precip_chance": hour.precip_chance,
                    "humidity": hour.humidity,
                }
                for hour in self.hourly
            ],
            "updated_at": {
                "forecast": self.updated_at.forecast,
                "hourly": self.updated_at.hourly,
            },
        }


def _iso_from_epoch(seconds: float) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class SnapshotMeta:
    source: str
    fetched_at: str
    age_ms: int

    @classmethod
    def build(cls, source: str, fetched_at: float, now: float) -> "SnapshotMeta":
        return cls(
            source=source,
            fetched_at=_iso_from_epoch(fetched_at),
            age_ms=int(round((now - fetched_at) * 1000)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "fetched_at": self.fetched_at, "age_ms": self.age_ms}


@dataclass(frozen=True)
class SnapshotResult:
    data: WeatherSnapshot
    meta: SnapshotMeta

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data.to_dict(), "meta": self.meta.to_dict()}


@dataclass(frozen=True)
class CacheEntry:
    snapshot: WeatherSnapshot
    fetched_at: float


@dataclass
class CacheBucket:
    """Mutable per-location cache state.

    ``fresh`` and ``last_good`` are replaced together on every successful
    fetch; a failed fetch leaves both untouched.
    """

    fresh: Optional[CacheEntry] = None
    last_good: Optional[CacheEntry] = None
    in_flight: Optional["asyncio.Task[WeatherSnapshot]"] = None


@dataclass(frozen=True)
class SavedLocation:
    name: str
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SavedLocation":
        return cls(
            name=str(data.get("name") or "Your location"),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
        )


@dataclass
class Subscriber:
    email: str
    unit: str
    timezone: str
    token: str
    subscribed_at: str
    location: Optional[SavedLocation] = None
    last_sent_on: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "location": self.location.to_dict() if self.location else None,
            "unit": self.unit,
            "timezone": self.timezone,
            "token": self.token,
            "subscribed_at": self.subscribed_at,
            "last_sent_on": self.last_sent_on,
        }
