"""Admin endpoints for inspecting and retrying webhook events.

Responses always use the ``{ok, data | message | error}`` envelope the admin
UI expects; errors are reported, never raised.
"""
from __future__ import annotations

import structlog
from aiohttp import web
from pydantic import ValidationError

from webhook_service.api.utils import error_response, page_params, parse_uuid
from webhook_service.core.exceptions import NotFoundError
from webhook_service.domain.dto import EventListFilters
from webhook_service.domain.models import Job
from webhook_service.services.dependencies import get_webhook_admin_service

logger = structlog.get_logger(__name__)

routes = web.RouteTableDef()


def _job_summary(job: Job) -> dict:
    return job.model_dump(
        mode="json",
        include={"id", "status", "attempts", "max_attempts", "error", "created_at", "processed_at"},
    )


@routes.get("/admin/webhooks")
async def list_webhook_events(request: web.Request):
    query = request.rel_url.query
    try:
        filters = EventListFilters(
            source=query.get("source") or None,
            event_type=query.get("event_type") or None,
            status=query.get("status") or None,
        )
    except ValidationError:
        return error_response(400, "status must be one of pending, processed, failed")
    page, limit = page_params(request)
    service = await get_webhook_admin_service(request)
    try:
        items, total, pages = await service.list_events(filters, page=page, limit=limit)
    except Exception:
        logger.exception("failed to load webhook events")
        return error_response(500, "Failed to load webhook events")
    return web.json_response(
        {
            "ok": True,
            "data": {
                "items": [item.model_dump(mode="json") for item in items],
                "total": total,
                "page": page,
                "limit": limit,
                "pages": pages,
            },
        }
    )


@routes.get("/admin/webhooks/{event_id}")
async def get_webhook_event(request: web.Request):
    event_id = parse_uuid(request.match_info["event_id"])
    if event_id is None:
        return error_response(400, "Invalid webhook event id")
    service = await get_webhook_admin_service(request)
    try:
        view, history = await service.get_event(event_id)
    except NotFoundError:
        return error_response(404, "Webhook event not found")
    except Exception:
        logger.exception("failed to fetch webhook event", webhook_event_id=str(event_id))
        return error_response(500, "Failed to fetch webhook event")
    data = view.model_dump(mode="json")
    data["jobs"] = [_job_summary(job) for job in history]
    return web.json_response({"ok": True, "data": data})


@routes.post("/admin/webhooks/{event_id}/retry")
async def retry_webhook_event(request: web.Request):
    event_id = parse_uuid(request.match_info["event_id"])
    if event_id is None:
        return error_response(400, "Invalid webhook event id")
    service = await get_webhook_admin_service(request)
    try:
        job = await service.retry(event_id)
    except NotFoundError:
        return error_response(404, "Webhook event not found")
    except Exception:
        logger.exception("failed to queue webhook retry", webhook_event_id=str(event_id))
        return error_response(500, "Failed to retry webhook event")
    return web.json_response(
        {"ok": True, "message": "Webhook event queued for retry", "jobId": str(job.id)}
    )
