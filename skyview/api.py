from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from skyview.config import app_config
from skyview.errors import GeocodingError, SkyViewError, UpstreamFetchError
from skyview.logging import get_logger, setup_logging
from skyview.models import SavedLocation
from skyview.scheduler import build_scheduler
from skyview.services.digest import DigestSender
from skyview.services.email import EmailSender
from skyview.services.geocode import GeocodingClient
from skyview.services.weather import WeatherService
from skyview.storage import SubscriberStore

setup_logging(app_config.logging)
logger = get_logger(__name__)

app = FastAPI(title="SkyView Weather API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SnapshotMetaPayload(BaseModel):
    source: str
    fetched_at: str
    age_ms: int


class WeatherResponse(BaseModel):
    data: Dict[str, Any]
    meta: SnapshotMetaPayload


class GeoResultPayload(BaseModel):
    name: str
    admin1: Optional[str] = None
    country: Optional[str] = None
    latitude: float
    longitude: float


class GeocodeResponse(BaseModel):
    results: List[GeoResultPayload]


class LocationPayload(BaseModel):
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class SubscribeRequest(BaseModel):
    email: Optional[str] = None
    location: Optional[LocationPayload] = None
    unit: Optional[str] = None
    timezone: Optional[str] = None


class SubscribeResponse(BaseModel):
    ok: bool
    message: str


class UnsubscribeResponse(BaseModel):
    ok: bool


class DigestResponse(BaseModel):
    ok: bool
    sent: int
    failed: int = 0


store = SubscriberStore(app_config.subscribers.path, default_timezone=app_config.digest.default_timezone)
weather_service = WeatherService.from_config(app_config.cache)
geocoder = GeocodingClient()
email_sender = EmailSender()
digest_sender = DigestSender(store, weather_service, email_sender)


def _parse_coordinate(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


@app.get("/weather", response_model=WeatherResponse)
async def get_weather(
    lat: Optional[str] = None,
    lon: Optional[str] = None,
    name: Optional[str] = None,
) -> Dict[str, Any]:
    latitude = _parse_coordinate(lat)
    longitude = _parse_coordinate(lon)
    try:
        if latitude is not None and longitude is not None:
            result = await weather_service.get_snapshot_by_coords(latitude, longitude, name)
        else:
            result = await weather_service.get_snapshot()
    except UpstreamFetchError as exc:
        logger.error("api.weather.failed", stage=exc.stage, error=str(exc))
        raise HTTPException(status_code=502, detail="Unable to fetch weather data") from exc
    return result.to_dict()


@app.get("/geocode", response_model=GeocodeResponse)
async def geocode(query: str = "") -> Dict[str, Any]:
    try:
        results = await geocoder.search(query)
    except GeocodingError as exc:
        raise HTTPException(status_code=502, detail="Unable to geocode location.") from exc
    return {"results": [result.to_dict() for result in results]}


@app.post("/subscribe", response_model=SubscribeResponse)
def subscribe(request: SubscribeRequest) -> SubscribeResponse:
    if not request.email:
        raise HTTPException(status_code=400, detail="Email is required")

    location: Optional[SavedLocation] = None
    if request.location and request.location.latitude is not None and request.location.longitude is not None:
        location = SavedLocation(
            name=request.location.name or "Your location",
            latitude=request.location.latitude,
            longitude=request.location.longitude,
        )

    try:
        result = store.add(request.email, location=location, unit=request.unit, timezone=request.timezone)
    except OSError as exc:
        logger.error("api.subscribe.failed", error=str(exc))
        raise HTTPException(status_code=500, detail="Unable to subscribe") from exc
    return SubscribeResponse(ok=result.ok, message=result.message)


@app.get("/unsubscribe", response_model=UnsubscribeResponse)
def unsubscribe(token: Optional[str] = None) -> UnsubscribeResponse:
    if not token:
        raise HTTPException(status_code=400, detail="Missing token")
    try:
        removed = store.remove_by_token(token)
    except OSError as exc:
        logger.error("api.unsubscribe.failed", error=str(exc))
        raise HTTPException(status_code=500, detail="Unable to unsubscribe") from exc
    if not removed:
        raise HTTPException(status_code=404, detail="Invalid token")
    return UnsubscribeResponse(ok=True)


@app.post("/notifications/daily", response_model=DigestResponse)
async def send_daily_digest(force: Optional[str] = None) -> DigestResponse:
    try:
        result = await digest_sender.send_daily(force=force == "1")
    except (OSError, SkyViewError) as exc:
        logger.error("api.digest.failed", error=str(exc))
        raise HTTPException(status_code=500, detail="Failed to send") from exc
    return DigestResponse(ok=True, sent=result.sent, failed=result.failed)


async def run_scheduled_digest() -> None:
    try:
        await digest_sender.send_daily()
    except (OSError, SkyViewError) as exc:
        logger.error("digest.scheduled_failed", error=str(exc))


_scheduler = build_scheduler(run_scheduled_digest, app_config.scheduler)


@app.on_event("startup")
async def _start_scheduler() -> None:
    if _scheduler and not _scheduler.running:
        logger.info("scheduler.start")
        _scheduler.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
    if _scheduler and _scheduler.running:
        logger.info("scheduler.stop")
        _scheduler.shutdown()
    await weather_service.aclose()
    await geocoder.aclose()
    await email_sender.aclose()
