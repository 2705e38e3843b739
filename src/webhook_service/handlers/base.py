"""Shared pieces for job handlers.

A handler receives the claimed job and either returns (success) or raises
(failed attempt). Handlers may run more than once for the same job, so
every business effect they trigger must be safe to apply twice.
"""
from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel, ValidationError

from webhook_service.core.exceptions import InvalidJobPayloadError
from webhook_service.domain.models import Job

JobHandler = Callable[[Job], Awaitable[None]]

TPayload = TypeVar("TPayload", bound=BaseModel)


def parse_payload(job: Job, model: type[TPayload]) -> TPayload:
    try:
        return model.model_validate(job.payload)
    except ValidationError as exc:
        raise InvalidJobPayloadError(
            f"Invalid payload for {job.type.value}: {exc.errors(include_url=False)}"
        ) from exc
