"""Unit conversions and small geo helpers used to normalize NWS payloads.

Every converter accepts ``None`` and NaN and returns ``None`` for them, so
missing sensor readings flow through untouched.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

Number = Union[int, float]

CARDINAL_DIRECTIONS = (
    "N",
    "NNE",
    "NE",
    "ENE",
    "E",
    "ESE",
    "SE",
    "SSE",
    "S",
    "SSW",
    "SW",
    "WSW",
    "W",
    "WNW",
    "NW",
    "NNW",
)


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def round_half_up(value: Any, digits: int = 0) -> Optional[Number]:
    number = _as_float(value)
    if number is None or math.isinf(number):
        return number
    factor = 10**digits
    rounded = math.floor(number * factor + 0.5) / factor
    if digits == 0:
        return int(rounded)
    return rounded


def c_to_f(value: Any, digits: int = 0) -> Optional[Number]:
    number = _as_float(value)
    if number is None:
        return None
    return round_half_up(number * 9 / 5 + 32, digits)


def f_to_c(value: Any, digits: int = 0) -> Optional[Number]:
    number = _as_float(value)
    if number is None:
        return None
    return round_half_up((number - 32) * 5 / 9, digits)


def mps_to_mph(value: Any, digits: int = 0) -> Optional[Number]:
    number = _as_float(value)
    if number is None:
        return None
    return round_half_up(number * 2.23694, digits)


def kmh_to_mph(value: Any, digits: int = 0) -> Optional[Number]:
    number = _as_float(value)
    if number is None:
        return None
    return round_half_up(number * 0.621371, digits)


def meters_to_miles(value: Any) -> Optional[Number]:
    number = _as_float(value)
    if number is None:
        return None
    return round_half_up(number / 1609.34, 1)


def pascal_to_inhg(value: Any) -> Optional[Number]:
    number = _as_float(value)
    if number is None:
        return None
    return round_half_up(number * 0.0002953, 2)


def degrees_to_cardinal(value: Any) -> Optional[str]:
    number = _as_float(value)
    if number is None or math.isinf(number):
        return None
    index = int(math.floor(number / 22.5 + 0.5)) % 16
    return CARDINAL_DIRECTIONS[index]


def parse_instant(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z`` for UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        instant = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        instant = datetime.fromisoformat(text)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


def date_key(value: Union[str, datetime, None], time_zone: str) -> Optional[str]:
    """Calendar day (``YYYY-MM-DD``) of an instant in ``time_zone``."""
    instant = parse_instant(value)
    if instant is None:
        return None
    return instant.astimezone(ZoneInfo(time_zone)).strftime("%Y-%m-%d")
