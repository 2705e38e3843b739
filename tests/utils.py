from __future__ import annotations

import json
from typing import Any

from webhook_service.services.signatures import compute_signature

DELHIVERY_ENABLED = {"shipping": {"providers": {"delhivery": {"enabled": True}}}}


def razorpay_event(event: str = "payment.captured", payment_id: str = "pay_123", **extra: Any) -> dict:
    entity = "refund" if event.startswith("refund.") else "payment"
    body = {
        "entity": "event",
        "event": event,
        "payload": {entity: {"entity": {"id": payment_id, "amount": 49900, "currency": "INR"}}},
    }
    body.update(extra)
    return body


def delhivery_event(awb: str = "1234567890", status: str = "In Transit", **extra: Any) -> dict:
    body = {"awb": awb, "status": status, "location": "Mumbai Hub", "timestamp": "2024-05-01T10:00:00Z"}
    body.update(extra)
    return body


def encode(body: dict) -> bytes:
    return json.dumps(body).encode("utf-8")


def signed_headers(raw: bytes, secret: str, provider: str = "razorpay") -> dict[str, str]:
    if provider == "delhivery":
        return {
            "Content-Type": "application/json",
            "X-Delhivery-Signature": compute_signature(raw, secret, "base64"),
        }
    return {
        "Content-Type": "application/json",
        "X-Razorpay-Signature": compute_signature(raw, secret, "hex"),
    }
