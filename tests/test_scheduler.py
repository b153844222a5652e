from skyview.config import SchedulerConfig
from skyview.scheduler import DIGEST_JOB_ID, build_scheduler


async def _job() -> None:
    return None


def test_disabled_scheduler_returns_none():
    assert build_scheduler(_job, SchedulerConfig(enabled=False)) is None


def test_enabled_scheduler_registers_digest_job():
    scheduler = build_scheduler(_job, SchedulerConfig(cron="0 * * * *", enabled=True))

    job = scheduler.get_job(DIGEST_JOB_ID)
    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True
    assert scheduler.running is False
