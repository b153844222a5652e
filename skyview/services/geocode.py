from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from skyview.config import GeocodingConfig, app_config
from skyview.errors import GeocodingError
from skyview.http_client import DEFAULT_USER_AGENT
from skyview.logging import get_logger

logger = get_logger(__name__)

MIN_QUERY_LENGTH = 2


@dataclass(frozen=True)
class GeoResult:
    name: str
    latitude: float
    longitude: float
    admin1: Optional[str] = None
    country: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "admin1": self.admin1,
            "country": self.country,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


class GeocodingClient:
    """Looks up US place names with Open-Meteo's free geocoding API."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        config: Optional[GeocodingConfig] = None,
    ) -> None:
        self.config = config or app_config.geocoding
        self.client = client or httpx.AsyncClient(
            timeout=self.config.timeout,
            headers={"User-Agent": DEFAULT_USER_AGENT},
        )

    async def search(self, query: str) -> List[GeoResult]:
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        params = {
            "name": query,
            "count": self.config.count,
            "language": "en",
            "format": "json",
            "country": self.config.country,
        }
        try:
            response = await self.client.get(self.config.base_url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("geocode.failed", query=query, error=str(exc))
            raise GeocodingError("Unable to geocode location.") from exc

        matches = data.get("results") if isinstance(data, dict) else None
        if not isinstance(data, dict) or not isinstance(matches or [], list):
            logger.warning("geocode.malformed", query=query, payload_type=type(data).__name__)
            raise GeocodingError("Unable to geocode location.")

        results: List[GeoResult] = []
        for item in matches or []:
            try:
                results.append(
                    GeoResult(
                        name=item["name"],
                        latitude=float(item["latitude"]),
                        longitude=float(item["longitude"]),
                        admin1=item.get("admin1"),
                        country=item.get("country"),
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.debug("geocode.skip_result", query=query, result=item)
        return results

    async def aclose(self) -> None:
        await self.client.aclose()
