from __future__ import annotations

import json
import re
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .logging import get_logger
from .models import SavedLocation, Subscriber

logger = get_logger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_UNIT = "F"
UNITS = {"F", "C"}
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_email(email: str) -> bool:
    return bool(_EMAIL_PATTERN.match(email))


def generate_token() -> str:
    return secrets.token_hex(16)


def resolve_timezone(name: Optional[str], default: str = DEFAULT_TIMEZONE) -> str:
    if not name:
        return default
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return default
    return name


def resolve_unit(unit: Optional[str]) -> str:
    if unit and unit.upper() in UNITS:
        return unit.upper()
    return DEFAULT_UNIT


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SubscribeResult:
    ok: bool
    message: str


class SubscriberStore:
    """Keeps newsletter subscribers in a JSON document.

    Every write replaces the whole document, so concurrent writers resolve as
    last write wins.
    """

    def __init__(
        self,
        path: Path | str = Path("data/subscribers.json"),
        *,
        default_timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self.path = Path(path)
        self.default_timezone = resolve_timezone(default_timezone)
        self._lock = threading.Lock()

    def _ensure_file(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("[]")

    def _read_all(self) -> List[Subscriber]:
        self._ensure_file()
        try:
            raw = json.loads(self.path.read_text() or "[]")
        except json.JSONDecodeError:
            logger.warning("subscribers.corrupt", path=str(self.path))
            raw = []
        subscribers, changed = self._migrate(raw)
        if changed:
            self._write_all(subscribers)
        return subscribers

    def _write_all(self, subscribers: List[Subscriber]) -> None:
        self._ensure_file()
        payload = [subscriber.to_dict() for subscriber in subscribers]
        self.path.write_text(json.dumps(payload, indent=2))

    def add(
        self,
        email: str,
        *,
        location: Optional[SavedLocation] = None,
        unit: Optional[str] = None,
        timezone: Optional[str] = None,
    ) -> SubscribeResult:
        normalized = normalize_email(email)
        if not is_email(normalized):
            return SubscribeResult(ok=False, message="Invalid email")

        with self._lock:
            subscribers = self._read_all()
            existing = next((entry for entry in subscribers if entry.email == normalized), None)
            if existing is not None:
                existing.location = location or existing.location
                existing.unit = resolve_unit(unit) if unit else existing.unit
                existing.timezone = resolve_timezone(timezone, existing.timezone) if timezone else existing.timezone
                self._write_all(subscribers)
                logger.info("subscribers.updated", email=normalized)
                return SubscribeResult(ok=True, message="Already subscribed")

            subscribers.append(
                Subscriber(
                    email=normalized,
                    location=location,
                    unit=resolve_unit(unit),
                    timezone=resolve_timezone(timezone, self.default_timezone),
                    token=generate_token(),
                    subscribed_at=_now_iso(),
                )
            )
            self._write_all(subscribers)
        logger.info("subscribers.added", email=normalized)
        return SubscribeResult(ok=True, message="Subscribed")

    def list(self) -> List[Subscriber]:
        with self._lock:
            return self._read_all()

    def update(self, subscriber: Subscriber) -> bool:
        with self._lock:
            subscribers = self._read_all()
            for index, entry in enumerate(subscribers):
                if entry.email == subscriber.email:
                    subscribers[index] = subscriber
                    self._write_all(subscribers)
                    return True
        return False

    def save_all(self, subscribers: List[Subscriber]) -> None:
        with self._lock:
            self._write_all(subscribers)

    def remove_by_token(self, token: str) -> bool:
        with self._lock:
            subscribers = self._read_all()
            remaining = [entry for entry in subscribers if entry.token != token]
            if len(remaining) == len(subscribers):
                return False
            self._write_all(remaining)
        logger.info("subscribers.removed")
        return True

    def _migrate(self, raw: Any) -> Tuple[List[Subscriber], bool]:
        """Upgrade older documents: bare e-mail lists and records missing fields."""

        if not isinstance(raw, list):
            return [], True

        subscribers: List[Subscriber] = []
        changed = False
        for item in raw:
            if isinstance(item, str):
                subscribers.append(
                    Subscriber(
                        email=normalize_email(item),
                        unit=DEFAULT_UNIT,
                        timezone=self.default_timezone,
                        token=generate_token(),
                        subscribed_at=_now_iso(),
                    )
                )
                changed = True
            elif isinstance(item, Mapping) and item.get("email"):
                subscriber = self._subscriber_from_dict(item)
                changed = changed or subscriber.to_dict() != dict(item)
                subscribers.append(subscriber)
            else:
                changed = True
        return subscribers, changed

    def _subscriber_from_dict(self, data: Mapping[str, Any]) -> Subscriber:
        location_data = data.get("location")
        location: Optional[SavedLocation] = None
        if isinstance(location_data, Mapping):
            try:
                location = SavedLocation.from_dict(location_data)
            except (KeyError, TypeError, ValueError):
                location = None
        return Subscriber(
            email=normalize_email(str(data["email"])),
            location=location,
            unit=resolve_unit(data.get("unit")),
            timezone=resolve_timezone(data.get("timezone"), self.default_timezone),
            token=data.get("token") or generate_token(),
            subscribed_at=data.get("subscribed_at") or _now_iso(),
            last_sent_on=data.get("last_sent_on"),
        )
