"""Refund, shipment and tracking jobs delegated to the storefront backend."""
from __future__ import annotations

from webhook_service.clients import CommerceClient
from webhook_service.domain.dto import (
    RefundProcessPayload,
    ShipmentCreatePayload,
    TrackingSyncPayload,
)
from webhook_service.domain.models import Job
from webhook_service.handlers.base import parse_payload


class RefundProcessHandler:
    def __init__(self, commerce: CommerceClient):
        self._commerce = commerce

    async def __call__(self, job: Job) -> None:
        payload = parse_payload(job, RefundProcessPayload)
        await self._commerce.process_refund(payload.refund_id, payload.payment_id)


class ShipmentCreateHandler:
    def __init__(self, commerce: CommerceClient):
        self._commerce = commerce

    async def __call__(self, job: Job) -> None:
        payload = parse_payload(job, ShipmentCreatePayload)
        await self._commerce.create_shipment(payload.order_id, payload.pickup_details)


class TrackingSyncHandler:
    def __init__(self, commerce: CommerceClient):
        self._commerce = commerce

    async def __call__(self, job: Job) -> None:
        payload = parse_payload(job, TrackingSyncPayload)
        await self._commerce.sync_tracking(payload.awb)
