from __future__ import annotations

from typing import Optional

import pytest

from skyview.models import CurrentConditions, DailyForecast, Location, UpdatedAt, WeatherSnapshot


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_snapshot(
    name: str = "Brooklyn, NY",
    *,
    latitude: float = 40.678,
    longitude: float = -73.944,
    high_f: Optional[float] = 80,
    low_f: Optional[float] = 60,
    summary: str = "Sunny",
) -> WeatherSnapshot:
    return WeatherSnapshot(
        location=Location(name=name, latitude=latitude, longitude=longitude),
        current=CurrentConditions(condition="Mostly Sunny", temperature_f=77, feels_like_f=81),
        daily=(
            DailyForecast(
                date="2024-07-04T06:00:00-04:00",
                label="Today",
                high_f=high_f,
                low_f=low_f,
                summary=summary,
                icon="https://api.weather.gov/icons/land/day/skc",
            ),
        ),
        hourly=(),
        updated_at=UpdatedAt(forecast="2024-07-04T12:00:00+00:00", hourly="2024-07-04T12:30:00+00:00"),
    )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
