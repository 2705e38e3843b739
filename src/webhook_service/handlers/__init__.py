"""Job handlers, one per job type."""
from __future__ import annotations

from webhook_service.clients import CommerceClient, MailClient
from webhook_service.domain.enums import JobType
from webhook_service.handlers.base import JobHandler
from webhook_service.handlers.commerce import (
    RefundProcessHandler,
    ShipmentCreateHandler,
    TrackingSyncHandler,
)
from webhook_service.handlers.email import EmailSendHandler
from webhook_service.handlers.webhook_process import WebhookProcessHandler
from webhook_service.repositories.webhook_events import WebhookEventRepository


def build_handlers(
    event_repository: WebhookEventRepository,
    commerce: CommerceClient,
    mail: MailClient,
) -> dict[JobType, JobHandler]:
    return {
        JobType.WEBHOOK_PROCESS: WebhookProcessHandler(event_repository, commerce),
        JobType.EMAIL_SEND: EmailSendHandler(mail),
        JobType.REFUND_PROCESS: RefundProcessHandler(commerce),
        JobType.SHIPMENT_CREATE: ShipmentCreateHandler(commerce),
        JobType.TRACKING_SYNC: TrackingSyncHandler(commerce),
    }


__all__ = ["JobHandler", "build_handlers"]
