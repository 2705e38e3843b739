"""Provider webhook endpoints (no auth; callers are external providers)."""
from __future__ import annotations

import structlog
from aiohttp import web

from webhook_service.api.utils import error_response
from webhook_service.core.exceptions import ProviderDisabledError, UnknownProviderError
from webhook_service.services.dependencies import get_ingestion_service
from webhook_service.services.ingestion import InvalidWebhookBody, parse_body
from webhook_service.services.providers import get_provider

logger = structlog.get_logger(__name__)

routes = web.RouteTableDef()


@routes.post("/webhook/{provider}")
async def receive_webhook(request: web.Request):
    try:
        provider = get_provider(request.match_info["provider"])
    except UnknownProviderError as exc:
        return error_response(404, str(exc))

    raw_body = await request.read()
    try:
        payload = parse_body(raw_body)
    except InvalidWebhookBody as exc:
        return error_response(400, str(exc))

    service = await get_ingestion_service(request)
    try:
        await service.ensure_enabled(provider)
        result = await service.ingest(provider, raw_body, payload, request.headers)
    except ProviderDisabledError as exc:
        return error_response(410, str(exc))
    except Exception:
        logger.exception("webhook processing error", provider=provider.name)
        if provider.ack_on_error:
            return web.json_response({"ok": False, "error": "Webhook processing failed"})
        return error_response(500, "Webhook processing failed")

    if result.duplicate:
        return web.json_response({"ok": True, "message": "Event already processed"})
    return web.json_response(
        {
            "ok": True,
            "message": "Webhook received",
            "eventId": str(result.event_id),
            "signatureValid": result.signature_valid,
        }
    )
