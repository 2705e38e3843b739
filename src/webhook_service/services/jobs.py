"""Job lifecycle: enqueueing, claiming and applying attempt outcomes."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from pydantic import ValidationError

from webhook_service.core.exceptions import InvalidJobPayloadError
from webhook_service.domain.dto import JOB_PAYLOAD_MODELS, JobCreateDTO
from webhook_service.domain.enums import JobStatus, JobType
from webhook_service.domain.models import Job, WebhookEvent
from webhook_service.repositories.jobs import JobRepository
from webhook_service.repositories.webhook_events import WebhookEventRepository
from webhook_service.services.state_machine import (
    backoff_seconds,
    status_after_failure,
    validate_job_transition,
)

logger = structlog.get_logger(__name__)

WORKER_LOST_ERROR = "Worker lost while processing job"


class JobService:
    def __init__(
        self,
        job_repository: JobRepository,
        event_repository: WebhookEventRepository,
        *,
        max_attempts: int = 3,
        backoff_max_seconds: int = 60,
    ):
        self._jobs = job_repository
        self._events = event_repository
        self._max_attempts = max_attempts
        self._backoff_max_seconds = backoff_max_seconds

    def build(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        *,
        max_attempts: int | None = None,
    ) -> JobCreateDTO:
        model = JOB_PAYLOAD_MODELS[job_type]
        try:
            normalized = model.model_validate(payload).model_dump(mode="json")
        except ValidationError as exc:
            raise InvalidJobPayloadError(
                f"Invalid payload for {job_type.value}: {exc.errors(include_url=False)}"
            ) from exc
        return JobCreateDTO(
            type=job_type,
            payload=normalized,
            max_attempts=max_attempts or self._max_attempts,
        )

    async def enqueue(
        self,
        job_type: JobType,
        payload: dict[str, Any],
        *,
        max_attempts: int | None = None,
    ) -> Job:
        job = await self._jobs.enqueue(self.build(job_type, payload, max_attempts=max_attempts))
        logger.info("job enqueued", job_id=str(job.id), job_type=job.type.value)
        return job

    def webhook_process_job(self, event: WebhookEvent) -> JobCreateDTO:
        return self.build(
            JobType.WEBHOOK_PROCESS,
            {
                "webhook_event_id": str(event.id),
                "source": event.source,
                "event_type": event.event_type,
            },
        )

    async def enqueue_webhook_process(self, event: WebhookEvent) -> Job:
        job = await self._jobs.enqueue(self.webhook_process_job(event))
        logger.info("job enqueued", job_id=str(job.id), job_type=job.type.value)
        return job

    async def claim(self) -> Job | None:
        return await self._jobs.claim_next()

    async def complete(self, job: Job) -> bool:
        """Apply a successful attempt. Returns False if the claim was lost meanwhile."""
        validate_job_transition(job.status, JobStatus.COMPLETED)
        event_id = job.webhook_event_id if job.type == JobType.WEBHOOK_PROCESS else None
        if event_id is not None:
            # event first: a crash in between re-runs an idempotent job instead
            # of leaving a completed job behind an unprocessed event
            marked = await self._events.mark_processed(event_id)
            if not marked:
                logger.info(
                    "webhook event superseded by processed duplicate",
                    job_id=str(job.id),
                    webhook_event_id=str(event_id),
                )
        updated = await self._jobs.mark_completed(job.id, attempts=job.attempts)
        if not updated:
            logger.warning("job claim lost before completion", job_id=str(job.id))
        return updated

    async def record_failure(self, job: Job, error: str) -> JobStatus | None:
        """Apply a failed attempt: back to pending while budget remains, else failed.

        Returns the new status, or None when the claim was lost meanwhile.
        """
        new_status = status_after_failure(job.attempts, job.max_attempts)
        validate_job_transition(job.status, new_status)
        if new_status == JobStatus.PENDING:
            delay = backoff_seconds(job.attempts, self._backoff_max_seconds)
            next_at = datetime.now(timezone.utc) + timedelta(seconds=delay)
            updated = await self._jobs.mark_retry(
                job.id, attempts=job.attempts, error=error, next_attempt_at=next_at
            )
        else:
            updated = await self._jobs.mark_failed(job.id, attempts=job.attempts, error=error)
        if not updated:
            logger.warning(
                "job claim lost before recording failure",
                job_id=str(job.id),
                attempts=job.attempts,
            )
            return None
        return new_status
