from __future__ import annotations

import asyncio
from functools import partial
from typing import Awaitable, Callable, Optional, Sequence

from skyview.cache import SnapshotCache, bucket_key
from skyview.config import CacheConfig, app_config
from skyview.models import SnapshotResult, WeatherSnapshot
from skyview.retry import DEFAULT_RETRY_DELAYS, call_with_retry
from skyview.services.nws import NwsClient


class WeatherService:
    """Entry point for weather snapshots.

    Wraps the NWS aggregation in the fixed retry schedule and serves it through
    the bucketed :class:`SnapshotCache`.
    """

    def __init__(
        self,
        client: Optional[NwsClient] = None,
        *,
        cache: Optional[SnapshotCache] = None,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.client = client or NwsClient()
        self.cache = cache or SnapshotCache()
        self.retry_delays = tuple(retry_delays)
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Optional[CacheConfig] = None, *, client: Optional[NwsClient] = None) -> "WeatherService":
        config = config or app_config.cache
        return cls(
            client,
            cache=SnapshotCache(
                fresh_ttl=config.fresh_ttl_seconds,
                stale_ttl=config.stale_ttl_seconds,
            ),
            retry_delays=config.retry_delays,
        )

    async def _with_retry(self, operation: Callable[[], Awaitable[WeatherSnapshot]], label: str) -> WeatherSnapshot:
        return await call_with_retry(operation, delays=self.retry_delays, sleep=self._sleep, label=label)

    async def get_snapshot(self) -> SnapshotResult:
        key = bucket_key()
        return await self.cache.get(key, partial(self._with_retry, self.client.fetch_default_weather, key))

    async def get_snapshot_by_coords(
        self,
        latitude: float,
        longitude: float,
        override_name: Optional[str] = None,
    ) -> SnapshotResult:
        key = bucket_key(latitude, longitude)
        fetch = partial(self.client.fetch_weather, latitude, longitude)
        return await self.cache.get(
            key,
            partial(self._with_retry, fetch, key),
            override_name=override_name,
        )

    async def aclose(self) -> None:
        await self.client.aclose()
