"""``email.send``: hand a rendered email to the mail service."""
from __future__ import annotations

from webhook_service.clients import MailClient
from webhook_service.core.exceptions import CollaboratorError
from webhook_service.domain.dto import EmailSendPayload
from webhook_service.domain.models import Job
from webhook_service.handlers.base import parse_payload


class EmailSendHandler:
    def __init__(self, mail: MailClient):
        self._mail = mail

    async def __call__(self, job: Job) -> None:
        payload = parse_payload(job, EmailSendPayload)
        result = await self._mail.send(payload.to, payload.subject, payload.html, payload.text)
        if not result.success:
            raise CollaboratorError(result.error or "Email delivery failed")
