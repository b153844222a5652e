from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from skyview.config import WeatherConfig, app_config
from skyview.errors import UpstreamFetchError
from skyview.http_client import JsonFetcher
from skyview.logging import get_logger
from skyview.models import (
    CurrentConditions,
    DailyForecast,
    HourlyForecast,
    Location,
    UpdatedAt,
    WeatherSnapshot,
)
from skyview.units import (
    c_to_f,
    date_key,
    degrees_to_cardinal,
    kmh_to_mph,
    meters_to_miles,
    mps_to_mph,
    pascal_to_inhg,
    round_half_up,
)

logger = get_logger(__name__)

MAX_DAILY_ENTRIES = 7
MAX_HOURLY_ENTRIES = 48
UNKNOWN_LOCATION = "Unknown"
DEFAULT_CONDITION = "Current conditions"


def _properties(payload: Mapping[str, Any], stage: str) -> Dict[str, Any]:
    properties = payload.get("properties")
    if not isinstance(properties, dict):
        raise UpstreamFetchError(stage, "response is missing 'properties'")
    return properties


def _periods(payload: Mapping[str, Any], stage: str) -> List[Dict[str, Any]]:
    periods = _properties(payload, stage).get("periods")
    if not isinstance(periods, list):
        raise UpstreamFetchError(stage, "response is missing forecast periods")
    return [period for period in periods if isinstance(period, dict)]


def _reading(observation: Mapping[str, Any], key: str) -> Optional[Any]:
    measurement = observation.get(key)
    if isinstance(measurement, dict):
        return measurement.get("value")
    return None


def _wind_mph(observation: Mapping[str, Any], key: str) -> Optional[float]:
    measurement = observation.get(key)
    if not isinstance(measurement, dict):
        return None
    unit_code = str(measurement.get("unitCode") or "")
    if unit_code.endswith("km_h-1"):
        return kmh_to_mph(measurement.get("value"))
    return mps_to_mph(measurement.get("value"))


def _first_present(*values: Optional[Any]) -> Optional[Any]:
    for value in values:
        if value is not None:
            return value
    return None


def _period_temperature_f(period: Mapping[str, Any]) -> Optional[float]:
    temperature = period.get("temperature")
    if period.get("temperatureUnit") == "C":
        return c_to_f(temperature)
    return round_half_up(temperature)


def fold_daily_periods(
    periods: Iterable[Mapping[str, Any]],
    time_zone: str,
    *,
    limit: int = MAX_DAILY_ENTRIES,
) -> Tuple[DailyForecast, ...]:
    """Collapse day/night forecast periods into one entry per calendar day.

    A daytime period provides the high, icon and summary. A nighttime period
    provides the low and only fills the summary when the day left it empty.
    """

    days: Dict[str, Dict[str, Any]] = {}
    for period in periods:
        start = period.get("startTime")
        key = date_key(start, time_zone)
        if key is None:
            continue

        entry = days.get(key)
        if entry is None:
            entry = days[key] = {
                "date": start,
                "label": period.get("name") or "",
                "high_f": None,
                "low_f": None,
                "summary": period.get("shortForecast") or "",
                "icon": period.get("icon") or "",
            }

        if period.get("isDaytime"):
            entry["high_f"] = _period_temperature_f(period)
            entry["summary"] = period.get("shortForecast") or ""
            entry["icon"] = period.get("icon") or ""
        else:
            entry["low_f"] = _period_temperature_f(period)
            entry["summary"] = entry["summary"] or period.get("shortForecast") or ""

    return tuple(DailyForecast(**entry) for entry in list(days.values())[:limit])


def build_hourly(periods: Sequence[Mapping[str, Any]], *, limit: int = MAX_HOURLY_ENTRIES) -> Tuple[HourlyForecast, ...]:
    return tuple(
        HourlyForecast(
            time=period.get("startTime") or "",
            temperature_f=_period_temperature_f(period),
            summary=period.get("shortForecast") or "",
            icon=period.get("icon") or "",
            precip_chance=round_half_up(_reading(period, "probabilityOfPrecipitation")),
            humidity=round_half_up(_reading(period, "relativeHumidity")),
        )
        for period in periods[:limit]
    )


def build_current(
    observation: Optional[Mapping[str, Any]],
    hourly_periods: Sequence[Mapping[str, Any]],
) -> CurrentConditions:
    """Current conditions from the station observation, else the first hourly period."""

    obs = observation or {}
    first_hour = hourly_periods[0] if hourly_periods else {}

    temperature_c = _reading(obs, "temperature")
    temperature_f = c_to_f(temperature_c)
    if temperature_f is None and first_hour:
        temperature_f = _period_temperature_f(first_hour)

    feels_like_c = _first_present(
        _reading(obs, "heatIndex"),
        _reading(obs, "windChill"),
        temperature_c,
    )

    return CurrentConditions(
        condition=obs.get("textDescription") or first_hour.get("shortForecast") or DEFAULT_CONDITION,
        temperature_f=temperature_f,
        feels_like_f=c_to_f(feels_like_c),
        humidity=round_half_up(_reading(obs, "relativeHumidity")),
        wind_speed_mph=_wind_mph(obs, "windSpeed"),
        wind_gust_mph=_wind_mph(obs, "windGust"),
        wind_direction=degrees_to_cardinal(_reading(obs, "windDirection")),
        dew_point_f=c_to_f(_reading(obs, "dewpoint")),
        pressure_inhg=pascal_to_inhg(_reading(obs, "barometricPressure")),
        visibility_miles=meters_to_miles(_reading(obs, "visibility")),
        observed_at=obs.get("timestamp"),
    )


def resolve_location_name(points: Mapping[str, Any], override_name: Optional[str] = None) -> str:
    if override_name:
        return override_name
    relative = points.get("relativeLocation")
    relative_props = relative.get("properties") if isinstance(relative, dict) else None
    if not isinstance(relative_props, dict):
        relative_props = {}
    parts = [relative_props.get("city"), relative_props.get("state")]
    name = ", ".join(str(part) for part in parts if part)
    return name or UNKNOWN_LOCATION


class NwsClient:
    """Aggregates the National Weather Service point, forecast and station APIs."""

    def __init__(
        self,
        fetcher: Optional[JsonFetcher] = None,
        *,
        config: Optional[WeatherConfig] = None,
    ) -> None:
        self.config = config or app_config.weather
        self.base_url = self.config.base_url.rstrip("/")
        self.fetcher = fetcher or JsonFetcher(
            user_agent=self.config.user_agent,
            timeout=self.config.timeout,
        )

    async def fetch_default_weather(self) -> WeatherSnapshot:
        location = self.config.default_location
        return await self.fetch_weather(location.latitude, location.longitude, location.name)

    async def fetch_weather(
        self,
        latitude: float,
        longitude: float,
        override_name: Optional[str] = None,
    ) -> WeatherSnapshot:
        trace_id = uuid.uuid4().hex
        logger.info("weather.fetch", trace_id=trace_id, latitude=latitude, longitude=longitude)

        points_payload = await self.fetcher.get_json(
            f"{self.base_url}/points/{latitude:.4f},{longitude:.4f}",
            stage="points",
            trace_id=trace_id,
        )
        points = _properties(points_payload, "points")
        forecast_url = points.get("forecast")
        hourly_url = points.get("forecastHourly")
        stations_url = points.get("observationStations")
        if not (forecast_url and hourly_url and stations_url):
            raise UpstreamFetchError("points", "point metadata is missing forecast links")

        forecast, hourly, stations = await asyncio.gather(
            self.fetcher.get_json(forecast_url, stage="forecast", trace_id=trace_id),
            self.fetcher.get_json(hourly_url, stage="hourly", trace_id=trace_id),
            self.fetcher.get_json(stations_url, stage="stations", trace_id=trace_id),
        )

        observation = await self._latest_observation(stations, trace_id=trace_id)

        try:
            forecast_periods = _periods(forecast, "forecast")
            hourly_periods = _periods(hourly, "hourly")[:MAX_HOURLY_ENTRIES]
            snapshot = WeatherSnapshot(
                location=Location(
                    name=resolve_location_name(points, override_name),
                    latitude=latitude,
                    longitude=longitude,
                ),
                current=build_current(observation, hourly_periods),
                daily=fold_daily_periods(forecast_periods, self.config.time_zone),
                hourly=build_hourly(hourly_periods),
                updated_at=UpdatedAt(
                    forecast=_properties(forecast, "forecast").get("updated"),
                    hourly=_properties(hourly, "hourly").get("updated"),
                ),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise UpstreamFetchError("parse", f"malformed forecast data: {exc}") from exc

        logger.info(
            "weather.fetch.complete",
            trace_id=trace_id,
            location=snapshot.location.name,
            observed=observation is not None,
        )
        return snapshot

    async def _latest_observation(
        self, stations: Mapping[str, Any], *, trace_id: str
    ) -> Optional[Dict[str, Any]]:
        features = stations.get("features") or []
        if not isinstance(features, list):
            raise UpstreamFetchError("stations", "response is missing station features")
        first = features[0] if features and isinstance(features[0], dict) else {}
        properties = first.get("properties")
        station_id = properties.get("stationIdentifier") if isinstance(properties, dict) else None
        if not station_id:
            logger.info("weather.observation.no_station", trace_id=trace_id)
            return None

        try:
            payload = await self.fetcher.get_json(
                f"{self.base_url}/stations/{station_id}/observations/latest",
                stage="observation",
                trace_id=trace_id,
            )
            return _properties(payload, "observation")
        except UpstreamFetchError as exc:
            logger.warning(
                "weather.observation.degraded",
                trace_id=trace_id,
                station_id=station_id,
                error=str(exc),
            )
            return None

    async def aclose(self) -> None:
        await self.fetcher.aclose()
