"""Inbound webhook capture: verify, dedupe, store, enqueue."""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping
from uuid import UUID

import structlog

from webhook_service.core.exceptions import ProviderDisabledError
from webhook_service.domain.dto import WebhookEventCreateDTO
from webhook_service.middleware.trace import get_safe_headers
from webhook_service.repositories.platform_settings import PlatformSettingsRepository
from webhook_service.repositories.webhook_events import WebhookEventRepository
from webhook_service.services import signatures
from webhook_service.services.idempotency import idempotency_key
from webhook_service.services.jobs import JobService
from webhook_service.services.providers import WebhookProvider

logger = structlog.get_logger(__name__)


class InvalidWebhookBody(ValueError):
    """Body is not a JSON object."""


def parse_body(raw_body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidWebhookBody("Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise InvalidWebhookBody("JSON body must be an object")
    return payload


@dataclass
class IngestResult:
    event_id: UUID | None
    signature_valid: bool
    duplicate: bool = False


class WebhookIngestionService:
    def __init__(
        self,
        event_repository: WebhookEventRepository,
        settings_repository: PlatformSettingsRepository,
        job_service: JobService,
    ):
        self._events = event_repository
        self._settings = settings_repository
        self._job_service = job_service

    async def ensure_enabled(self, provider: WebhookProvider) -> None:
        if provider.toggle is None:
            return
        settings_key, _ = provider.toggle
        doc = await self._settings.get(settings_key)
        if not provider.is_enabled(doc):
            raise ProviderDisabledError(f"{provider.name.capitalize()} webhooks are disabled")

    @staticmethod
    def check_signature(
        provider: WebhookProvider, raw_body: bytes, signature: str | None
    ) -> bool:
        secret = provider.secret
        if not secret:
            # Fail-open until the secret is provisioned: accept and say so every time.
            logger.warning(
                "webhook secret not configured, skipping signature verification",
                provider=provider.name,
            )
            return True
        if not signature:
            # unsigned deliveries are accepted as valid even with a secret configured
            logger.warning(
                "webhook signature header missing, skipping signature verification",
                provider=provider.name,
                header=provider.signature_header,
            )
            return True
        valid = signatures.verify(raw_body, signature, secret, provider.signature_encoding)
        if not valid:
            logger.warning(
                "webhook signature invalid, accepting delivery",
                provider=provider.name,
            )
        return valid

    async def ingest(
        self,
        provider: WebhookProvider,
        raw_body: bytes,
        payload: dict[str, Any],
        headers: Mapping[str, str],
    ) -> IngestResult:
        signature = headers.get(provider.signature_header) or None
        signature_valid = self.check_signature(provider, raw_body, signature)

        event_type = provider.event_type(payload)
        external_id = provider.external_id(payload)
        key = idempotency_key(payload)

        duplicate = await self._events.find_processed_duplicate(
            provider.name, external_id=external_id, idempotency_key=key
        )
        if duplicate is not None:
            logger.info(
                "duplicate webhook ignored",
                provider=provider.name,
                event_type=event_type,
                webhook_event_id=str(duplicate.id),
            )
            return IngestResult(event_id=duplicate.id, signature_valid=signature_valid, duplicate=True)

        event, job = await self._events.insert_with_job(
            WebhookEventCreateDTO(
                source=provider.name,
                event_type=event_type,
                external_id=external_id,
                payload=payload,
                headers=get_safe_headers(headers),
                signature=signature,
                signature_valid=signature_valid,
                idempotency_key=key,
            ),
            self._job_service.webhook_process_job,
        )
        if job is not None:
            logger.info(
                "webhook stored and queued",
                provider=provider.name,
                event_type=event_type,
                webhook_event_id=str(event.id),
                job_id=str(job.id),
            )
        else:
            logger.info(
                "webhook redelivery matched stored event",
                provider=provider.name,
                webhook_event_id=str(event.id),
            )
        return IngestResult(event_id=event.id, signature_valid=signature_valid)
