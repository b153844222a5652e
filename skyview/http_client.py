from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from .errors import UpstreamFetchError
from .logging import get_logger

logger = get_logger(__name__)


DEFAULT_USER_AGENT = "SkyView Weather (weather-app@example.com)"


class JsonFetcher:
    """Async HTTP wrapper that turns every failure into an :class:`UpstreamFetchError`."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        accept: str = "application/geo+json",
    ) -> None:
        self.headers = {"User-Agent": user_agent, "Accept": accept}
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            headers=self.headers,
            follow_redirects=True,
        )

    async def get_json(self, url: str, *, stage: str, trace_id: str | None = None) -> Dict[str, Any]:
        logger.debug("http.fetch", trace_id=trace_id, stage=stage, url=url)
        try:
            response = await self.client.get(url, headers=self.headers)
        except httpx.HTTPError as exc:
            logger.warning("http.fetch.error", trace_id=trace_id, stage=stage, url=url, error=str(exc))
            raise UpstreamFetchError(stage, f"request failed: {exc}", url=url) from exc

        if not response.is_success:
            logger.warning(
                "http.fetch.status",
                trace_id=trace_id,
                stage=stage,
                url=url,
                status_code=response.status_code,
            )
            raise UpstreamFetchError(
                stage,
                f"NWS request failed: {response.status_code} {url}",
                url=url,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamFetchError(stage, "response was not valid JSON", url=url) from exc
        if not isinstance(payload, dict):
            raise UpstreamFetchError(stage, "response was not a JSON object", url=url)
        return payload

    async def aclose(self) -> None:
        await self.client.aclose()
