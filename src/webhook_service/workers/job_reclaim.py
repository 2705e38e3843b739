"""Worker: return jobs abandoned by crashed workers to the queue."""
from __future__ import annotations

from datetime import datetime, timedelta

from webhook_service.db.pool import get_pool
from webhook_service.repositories.jobs import JobRepository
from webhook_service.services.jobs import WORKER_LOST_ERROR
from webhook_service.settings import settings


async def job_reclaim_stuck(now: datetime) -> str | None:
    """Release jobs locked in ``processing`` longer than ``job_stuck_minutes``."""
    pool = await get_pool()
    cutoff = now - timedelta(minutes=settings.job_stuck_minutes)
    reclaimed, failed = await JobRepository(pool).reclaim_stuck(cutoff, error=WORKER_LOST_ERROR)
    if not reclaimed and not failed:
        return None
    return f"reclaimed={reclaimed} failed={failed}"
