"""Pydantic DTOs for repository/service layers and job payloads."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from webhook_service.domain.enums import EventStatus, JobType


class WebhookEventCreateDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: str
    event_type: str = "unknown"
    external_id: str | None = None
    payload: dict[str, Any]
    headers: dict[str, str] = Field(default_factory=dict)
    signature: str | None = None
    signature_valid: bool
    idempotency_key: str


class JobCreateDTO(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: JobType
    payload: dict[str, Any] = Field(default_factory=dict)
    max_attempts: int = Field(default=3, ge=1, le=20)


class EventListFilters(BaseModel):
    source: str | None = None
    event_type: str | None = None
    status: EventStatus | None = None


# Job payloads, one per job type.


class WebhookProcessPayload(BaseModel):
    """Back-reference to the event, not a copy of it."""

    webhook_event_id: UUID
    source: str
    event_type: str


class EmailSendPayload(BaseModel):
    to: str = Field(min_length=3)
    subject: str = Field(min_length=1)
    html: str
    text: str | None = None


class RefundProcessPayload(BaseModel):
    refund_id: str = Field(min_length=1)
    payment_id: str = Field(min_length=1)


class ShipmentCreatePayload(BaseModel):
    order_id: str = Field(min_length=1)
    pickup_details: dict[str, Any] = Field(default_factory=dict)


class TrackingSyncPayload(BaseModel):
    awb: str = Field(min_length=1)


JOB_PAYLOAD_MODELS: dict[JobType, type[BaseModel]] = {
    JobType.WEBHOOK_PROCESS: WebhookProcessPayload,
    JobType.EMAIL_SEND: EmailSendPayload,
    JobType.REFUND_PROCESS: RefundProcessPayload,
    JobType.SHIPMENT_CREATE: ShipmentCreatePayload,
    JobType.TRACKING_SYNC: TrackingSyncPayload,
}
