"""Internal endpoint other platform services use to queue background work."""
from __future__ import annotations

from aiohttp import web
from pydantic import BaseModel, Field, ValidationError

from webhook_service.api.utils import error_response, read_json
from webhook_service.core.exceptions import InvalidJobPayloadError
from webhook_service.domain.enums import JobType
from webhook_service.services.dependencies import get_job_service

routes = web.RouteTableDef()


class JobEnqueueDTO(BaseModel):
    type: JobType
    payload: dict = Field(default_factory=dict)
    max_attempts: int | None = Field(default=None, ge=1, le=20)


@routes.post("/internal/jobs")
async def enqueue_job(request: web.Request):
    body = await read_json(request)
    try:
        dto = JobEnqueueDTO.model_validate(body)
    except ValidationError as exc:
        return error_response(400, exc.json())
    if dto.type == JobType.WEBHOOK_PROCESS:
        # only ingestion and admin retry create these; they must reference a stored event
        return error_response(400, "webhook.process jobs cannot be enqueued directly")
    service = await get_job_service(request)
    try:
        job = await service.enqueue(dto.type, dto.payload, max_attempts=dto.max_attempts)
    except InvalidJobPayloadError as exc:
        return error_response(400, str(exc))
    return web.json_response({"ok": True, "data": job.model_dump(mode="json")}, status=201)
