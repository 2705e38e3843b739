"""Repository package exports."""

from webhook_service.repositories.jobs import JobRepository
from webhook_service.repositories.platform_settings import PlatformSettingsRepository
from webhook_service.repositories.webhook_events import WebhookEventRepository

__all__ = [
    "JobRepository",
    "PlatformSettingsRepository",
    "WebhookEventRepository",
]
