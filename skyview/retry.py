from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, Tuple, Type, TypeVar

from .errors import UpstreamFetchError
from .logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Seconds to wait before each attempt: try immediately, then after 300ms, then 800ms.
DEFAULT_RETRY_DELAYS: Tuple[float, ...] = (0.0, 0.3, 0.8)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
    retry_on: Tuple[Type[BaseException], ...] = (UpstreamFetchError,),
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    label: str | None = None,
) -> T:
    """Run ``operation`` once per entry in ``delays``, sleeping first when non-zero.

    The delays are a fixed schedule, not a backoff. When every attempt fails
    the last error is re-raised as is.
    """

    if not delays:
        raise ValueError("delays must contain at least one attempt")

    attempts = len(delays)
    for attempt, delay in enumerate(delays, start=1):
        if delay > 0:
            await sleep(delay)
        try:
            return await operation()
        except retry_on as exc:
            logger.warning(
                "retry.attempt_failed",
                label=label,
                attempt=attempt,
                attempts=attempts,
                error=str(exc),
            )
            if attempt == attempts:
                raise
