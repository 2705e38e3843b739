"""``webhook.process``: apply the business effect of a stored provider event."""
from __future__ import annotations

from typing import Awaitable, Callable

import structlog

from webhook_service.clients import CommerceClient
from webhook_service.core.exceptions import InvalidJobPayloadError
from webhook_service.domain.dto import WebhookProcessPayload
from webhook_service.domain.enums import WebhookSource
from webhook_service.domain.models import Job, WebhookEvent
from webhook_service.handlers.base import parse_payload
from webhook_service.repositories.webhook_events import WebhookEventRepository
from webhook_service.services.providers import razorpay_entity_id

logger = structlog.get_logger(__name__)

Effect = Callable[[CommerceClient, WebhookEvent], Awaitable[None]]


def _require(value: str | None, what: str, event: WebhookEvent) -> str:
    if not value:
        raise InvalidJobPayloadError(f"{event.source} {event.event_type} event has no {what}")
    return value


def _payment_status(status: str) -> Effect:
    async def effect(commerce: CommerceClient, event: WebhookEvent) -> None:
        payment_id = _require(razorpay_entity_id(event.payload, "payment"), "payment id", event)
        await commerce.update_payment_status(payment_id, status)

    return effect


async def _refund_processed(commerce: CommerceClient, event: WebhookEvent) -> None:
    refund_id = _require(razorpay_entity_id(event.payload, "refund"), "refund id", event)
    await commerce.update_refund_status(refund_id, "succeeded")


async def _shipment_update(commerce: CommerceClient, event: WebhookEvent) -> None:
    payload = event.payload
    awb = _require(payload.get("awb") or payload.get("waybill"), "awb", event)
    await commerce.update_shipment_status(
        str(awb),
        {
            "status": payload.get("status") or event.event_type,
            "location": payload.get("location"),
            "remarks": payload.get("remarks"),
            "occurred_at": payload.get("timestamp"),
        },
    )


# (source, event_type) -> effect; event_type None matches any event from the source
EFFECTS: dict[tuple[str, str | None], Effect] = {
    (WebhookSource.RAZORPAY.value, "payment.captured"): _payment_status("completed"),
    (WebhookSource.RAZORPAY.value, "payment.failed"): _payment_status("failed"),
    (WebhookSource.RAZORPAY.value, "refund.processed"): _refund_processed,
    (WebhookSource.DELHIVERY.value, None): _shipment_update,
}


def resolve_effect(source: str, event_type: str) -> Effect | None:
    return EFFECTS.get((source, event_type)) or EFFECTS.get((source, None))


class WebhookProcessHandler:
    def __init__(self, event_repository: WebhookEventRepository, commerce: CommerceClient):
        self._events = event_repository
        self._commerce = commerce

    async def __call__(self, job: Job) -> None:
        payload = parse_payload(job, WebhookProcessPayload)
        event = await self._events.get(payload.webhook_event_id)
        effect = resolve_effect(event.source, event.event_type)
        if effect is None:
            logger.info(
                "no business effect for webhook event",
                source=event.source,
                event_type=event.event_type,
                webhook_event_id=str(event.id),
            )
            return
        await effect(self._commerce, event)
