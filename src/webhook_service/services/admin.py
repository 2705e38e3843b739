"""Operator views over webhook events and their jobs, plus manual retry."""
from __future__ import annotations

import math
from uuid import UUID

import structlog

from webhook_service.domain.dto import EventListFilters
from webhook_service.domain.models import Job, WebhookEventView
from webhook_service.repositories.jobs import JobRepository
from webhook_service.repositories.webhook_events import WebhookEventRepository
from webhook_service.services.jobs import JobService

logger = structlog.get_logger(__name__)


class WebhookAdminService:
    def __init__(
        self,
        event_repository: WebhookEventRepository,
        job_repository: JobRepository,
        job_service: JobService,
    ):
        self._events = event_repository
        self._jobs = job_repository
        self._job_service = job_service

    async def list_events(
        self, filters: EventListFilters, *, page: int, limit: int
    ) -> tuple[list[WebhookEventView], int, int]:
        items, total = await self._events.list_with_latest_job(
            filters, limit=limit, offset=(page - 1) * limit
        )
        pages = math.ceil(total / limit) if limit else 0
        return items, total, pages

    async def get_event(self, event_id: UUID) -> tuple[WebhookEventView, list[Job]]:
        """Event with derived status, and every job it spawned (newest first)."""
        event = await self._events.get(event_id)
        history = await self._jobs.list_for_event(event_id)
        latest = history[0] if history else None
        return WebhookEventView.from_event(event, latest), history

    async def retry(self, event_id: UUID) -> Job:
        # reset before enqueueing so a fast worker cannot finish the job first
        event = await self._events.reset_for_retry(event_id)
        job = await self._job_service.enqueue_webhook_process(event)
        logger.info(
            "webhook event queued for retry",
            webhook_event_id=str(event_id),
            job_id=str(job.id),
        )
        return job
