"""Background maintenance workers for webhook-service.

Each worker is a standalone module exporting a single async task function
compatible with :class:`webhook_service.worker.WorkerTask`.
"""
from __future__ import annotations

from webhook_service.settings import settings
from webhook_service.worker import BackgroundWorker, WorkerTask
from webhook_service.workers.job_reclaim import job_reclaim_stuck


def create_maintenance_worker() -> BackgroundWorker:
    return BackgroundWorker(
        interval_seconds=settings.worker_interval_seconds,
        tasks=[WorkerTask(name="job_reclaim_stuck", fn=job_reclaim_stuck)],
    )


__all__ = ["create_maintenance_worker"]
