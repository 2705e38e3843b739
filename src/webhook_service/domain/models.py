"""Pydantic models representing stored entities."""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from webhook_service.domain.enums import EventStatus, JobStatus, JobType


class WebhookEvent(BaseModel):
    id: UUID
    source: str
    event_type: str = "unknown"
    external_id: str | None = None
    payload: dict[str, Any]
    headers: dict[str, str] = Field(default_factory=dict)
    signature: str | None = None
    signature_valid: bool
    idempotency_key: str
    processed: bool = False
    created_at: datetime
    processed_at: datetime | None = None
    last_retry_at: datetime | None = None


class Job(BaseModel):
    id: UUID
    type: JobType
    payload: dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    error: str | None = None
    next_attempt_at: datetime
    locked_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    processed_at: datetime | None = None

    @property
    def webhook_event_id(self) -> UUID | None:
        value = self.payload.get("webhook_event_id")
        return UUID(value) if value else None


class WebhookEventView(BaseModel):
    """A webhook event joined with the most recent job referencing it."""

    id: UUID
    source: str
    event_type: str
    payload: dict[str, Any]
    status: EventStatus
    attempts: int = 0
    last_error: str | None = None
    signature_valid: bool
    job_id: UUID | None = None
    job_status: JobStatus | None = None
    created_at: datetime
    processed_at: datetime | None = None
    last_retry_at: datetime | None = None

    @staticmethod
    def derive_status(event: WebhookEvent, job: Job | None) -> EventStatus:
        if job is not None and job.status == JobStatus.FAILED:
            return EventStatus.FAILED
        if event.processed:
            return EventStatus.PROCESSED
        return EventStatus.PENDING

    @classmethod
    def from_event(cls, event: WebhookEvent, job: Job | None) -> "WebhookEventView":
        return cls(
            id=event.id,
            source=event.source,
            event_type=event.event_type,
            payload=event.payload,
            status=cls.derive_status(event, job),
            attempts=job.attempts if job else 0,
            last_error=job.error if job else None,
            signature_valid=event.signature_valid,
            job_id=job.id if job else None,
            job_status=job.status if job else None,
            created_at=event.created_at,
            processed_at=event.processed_at,
            last_retry_at=event.last_retry_at,
        )
