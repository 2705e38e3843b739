"""Common exceptions for domain, repository and job layers."""
from __future__ import annotations


class WebhookServiceError(Exception):
    """Base error for service layer."""


class RepositoryError(WebhookServiceError):
    """Raised when repository operations fail."""


class NotFoundError(RepositoryError):
    """Raised when requested entity is missing."""


class InvalidStatusTransitionError(WebhookServiceError):
    """Raised when a job attempts an unsupported status change."""


class UnknownProviderError(WebhookServiceError):
    """Raised when a webhook arrives for a provider we do not integrate with."""


class ProviderDisabledError(WebhookServiceError):
    """Raised when the provider integration is switched off in platform settings."""


class UnknownJobTypeError(WebhookServiceError):
    """Raised when no handler is registered for a job type."""


class InvalidJobPayloadError(WebhookServiceError):
    """Raised when a job payload does not match its type."""


class CollaboratorError(WebhookServiceError):
    """Raised when a downstream platform service rejects or fails a call."""
