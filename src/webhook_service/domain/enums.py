"""Domain enums."""
from __future__ import annotations

from enum import Enum


class WebhookSource(str, Enum):
    """External providers that deliver webhooks."""

    RAZORPAY = "razorpay"
    DELHIVERY = "delhivery"


class JobType(str, Enum):
    """Kinds of background work."""

    WEBHOOK_PROCESS = "webhook.process"
    EMAIL_SEND = "email.send"
    REFUND_PROCESS = "refund.process"
    SHIPMENT_CREATE = "shipment.create"
    TRACKING_SYNC = "tracking.sync"


class JobStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class EventStatus(str, Enum):
    """Status of a webhook event as shown to operators (derived, never stored)."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
