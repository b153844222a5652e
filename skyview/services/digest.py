from __future__ import annotations

import asyncio
import html
import textwrap
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set
from urllib.parse import quote
from zoneinfo import ZoneInfo

from skyview.cache import bucket_key
from skyview.config import DigestConfig, app_config
from skyview.logging import get_logger
from skyview.models import SnapshotResult, Subscriber
from skyview.services.email import EmailSender
from skyview.services.weather import WeatherService
from skyview.storage import DEFAULT_TIMEZONE, SubscriberStore, resolve_timezone
from skyview.units import f_to_c, round_half_up

logger = get_logger(__name__)

SUBJECT = "Your SkyView morning forecast"
MISSING_VALUE = "—"


@dataclass
class DigestResult:
    sent: int
    failed: int = 0


def format_temperature(value_f: Optional[float], unit: str) -> str:
    if value_f is None:
        return MISSING_VALUE
    if unit == "C":
        return f"{f_to_c(value_f)}°C"
    return f"{round_half_up(value_f)}°F"


def local_date(now: datetime, time_zone: str, default: str = DEFAULT_TIMEZONE) -> str:
    return now.astimezone(ZoneInfo(resolve_timezone(time_zone, default))).strftime("%Y-%m-%d")


def local_hour(now: datetime, time_zone: str, default: str = DEFAULT_TIMEZONE) -> int:
    return now.astimezone(ZoneInfo(resolve_timezone(time_zone, default))).hour


def build_email(location: str, summary: str, high: str, low: str, unsubscribe_url: str) -> str:
    return textwrap.dedent(
        f"""
        <div style="font-family: Inter, Arial, sans-serif; color:#0f172a;">
          <h2 style="margin-bottom:8px;">{html.escape(location)} &middot; Morning Forecast</h2>
          <p style="margin:0 0 12px;">{html.escape(summary)}</p>
          <p style="margin:0; font-size:14px;">High: {html.escape(high)} &middot; Low: {html.escape(low)}</p>
          <p style="margin-top:16px; font-size:12px; color:#64748b;">
            SkyView Weather &middot; <a href="{html.escape(unsubscribe_url, quote=True)}" style="color:#64748b;">Unsubscribe</a>
          </p>
        </div>
        """
    ).strip()


class DigestSender:
    """Sends the morning forecast e-mail to subscribers whose local send hour has come."""

    def __init__(
        self,
        store: SubscriberStore,
        weather: WeatherService,
        email: EmailSender,
        *,
        config: Optional[DigestConfig] = None,
    ) -> None:
        self.store = store
        self.weather = weather
        self.email = email
        self.config = config or app_config.digest

    def is_due(self, subscriber: Subscriber, now: datetime) -> bool:
        return (
            local_hour(now, subscriber.timezone, self.config.default_timezone) == self.config.send_hour
            and subscriber.last_sent_on != self._local_date(subscriber, now)
        )

    def _local_date(self, subscriber: Subscriber, now: datetime) -> str:
        return local_date(now, subscriber.timezone, self.config.default_timezone)

    def unsubscribe_url(self, subscriber: Subscriber) -> str:
        base_url = self.config.base_url.rstrip("/")
        return f"{base_url}/unsubscribe?token={quote(subscriber.token)}"

    async def send_daily(self, *, force: bool = False, now: Optional[datetime] = None) -> DigestResult:
        now = now or datetime.now(timezone.utc)
        subscribers = self.store.list()
        due = subscribers if force else [entry for entry in subscribers if self.is_due(entry, now)]
        if not due:
            logger.info("digest.nothing_due", subscribers=len(subscribers))
            return DigestResult(sent=0)

        snapshots: Dict[str, asyncio.Task[SnapshotResult]] = {}

        def snapshot_for(subscriber: Subscriber) -> "asyncio.Task[SnapshotResult]":
            location = subscriber.location
            if location is None:
                key = bucket_key()
                if key not in snapshots:
                    snapshots[key] = asyncio.create_task(self.weather.get_snapshot())
            else:
                key = bucket_key(location.latitude, location.longitude)
                if key not in snapshots:
                    snapshots[key] = asyncio.create_task(
                        self.weather.get_snapshot_by_coords(
                            location.latitude, location.longitude, location.name
                        )
                    )
            return snapshots[key]

        async def deliver(subscriber: Subscriber) -> str:
            result = await snapshot_for(subscriber)
            today = result.data.daily[0] if result.data.daily else None
            summary = today.summary if today and today.summary else result.data.current.condition
            location_name = subscriber.location.name if subscriber.location else result.data.location.name
            await self.email.send(
                to=subscriber.email,
                subject=SUBJECT,
                html=build_email(
                    location_name,
                    summary,
                    format_temperature(today.high_f if today else None, subscriber.unit),
                    format_temperature(today.low_f if today else None, subscriber.unit),
                    self.unsubscribe_url(subscriber),
                ),
            )
            return subscriber.email

        outcomes = await asyncio.gather(*(deliver(subscriber) for subscriber in due), return_exceptions=True)

        sent: Set[str] = set()
        failed = 0
        for subscriber, outcome in zip(due, outcomes):
            if isinstance(outcome, BaseException):
                failed += 1
                logger.error("digest.failed", email=subscriber.email, error=str(outcome))
            else:
                sent.add(outcome)

        if sent:
            updated: List[Subscriber] = []
            for subscriber in subscribers:
                if subscriber.email in sent:
                    subscriber.last_sent_on = self._local_date(subscriber, now)
                updated.append(subscriber)
            self.store.save_all(updated)

        logger.info("digest.sent", sent=len(sent), failed=failed)
        return DigestResult(sent=len(sent), failed=failed)
