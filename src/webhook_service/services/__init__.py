"""Domain services exports."""

from webhook_service.services.admin import WebhookAdminService
from webhook_service.services.ingestion import WebhookIngestionService
from webhook_service.services.jobs import JobService

__all__ = [
    "JobService",
    "WebhookAdminService",
    "WebhookIngestionService",
]
