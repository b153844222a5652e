from __future__ import annotations

from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from skyview.config import SchedulerConfig
from skyview.logging import get_logger

logger = get_logger(__name__)

DIGEST_JOB_ID = "daily-digest"


def build_scheduler(
    job: Callable[[], Awaitable[object]],
    config: SchedulerConfig,
    *,
    timezone: str = "UTC",
) -> Optional[AsyncIOScheduler]:
    """Schedule the digest check. Subscribers are filtered by local send hour inside the job."""
    if not config.enabled:
        logger.info("scheduler.disabled")
        return None

    scheduler = AsyncIOScheduler(timezone=timezone)
    trigger = CronTrigger.from_crontab(config.cron, timezone=timezone)
    scheduler.add_job(job, trigger=trigger, id=DIGEST_JOB_ID, max_instances=1, coalesce=True)
    logger.info("scheduler.configured", cron=config.cron, job=DIGEST_JOB_ID)
    return scheduler
