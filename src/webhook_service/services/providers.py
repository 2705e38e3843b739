"""Webhook providers: how each one signs, names and identifies its events."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from webhook_service.core.exceptions import UnknownProviderError
from webhook_service.domain.enums import WebhookSource
from webhook_service.services.signatures import SignatureEncoding
from webhook_service.settings import settings


def dig(payload: Any, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a key is missing."""
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def razorpay_entity_id(payload: dict[str, Any], entity: str) -> str | None:
    """Id of ``payload.<entity>`` from a Razorpay body.

    Razorpay nests entities as ``{"payload": {"payment": {"entity": {"id": ...}}}}``;
    test fixtures and older integrations also send ``{"payment": {"id": ...}}``.
    """
    value = dig(payload, "payload", entity, "entity", "id") or dig(payload, "payload", entity, "id")
    return str(value) if value else None


def _razorpay_event_type(payload: dict[str, Any]) -> str:
    return str(payload.get("event") or "unknown")


def _razorpay_external_id(payload: dict[str, Any]) -> str | None:
    event_type = _razorpay_event_type(payload)
    entity = "refund" if event_type.startswith("refund.") else "payment"
    entity_id = razorpay_entity_id(payload, entity)
    return f"{event_type}:{entity_id}" if entity_id else None


def _delhivery_event_type(payload: dict[str, Any]) -> str:
    return str(payload.get("event") or payload.get("status") or "unknown")


@dataclass(frozen=True)
class WebhookProvider:
    source: WebhookSource
    signature_header: str
    signature_encoding: SignatureEncoding
    secret_setting: str
    event_type: Callable[[dict[str, Any]], str]
    external_id: Callable[[dict[str, Any]], str | None]
    # (platform settings key, path to the boolean flag); None means always enabled
    toggle: tuple[str, tuple[str, ...]] | None = None
    # answer 200 even when storing fails, so the provider stops redelivering
    ack_on_error: bool = True

    @property
    def name(self) -> str:
        return self.source.value

    @property
    def secret(self) -> str:
        return getattr(settings, self.secret_setting)

    def is_enabled(self, settings_doc: dict[str, Any] | None) -> bool:
        if self.toggle is None:
            return True
        _, path = self.toggle
        return bool(dig(settings_doc or {}, *path))


PROVIDERS: dict[str, WebhookProvider] = {
    WebhookSource.RAZORPAY.value: WebhookProvider(
        source=WebhookSource.RAZORPAY,
        signature_header="X-Razorpay-Signature",
        signature_encoding="hex",
        secret_setting="razorpay_webhook_secret",
        event_type=_razorpay_event_type,
        external_id=_razorpay_external_id,
    ),
    WebhookSource.DELHIVERY.value: WebhookProvider(
        source=WebhookSource.DELHIVERY,
        signature_header="X-Delhivery-Signature",
        signature_encoding="base64",
        secret_setting="delhivery_webhook_secret",
        event_type=_delhivery_event_type,
        # status pushes carry no event id; dedupe falls back to the idempotency key
        external_id=lambda _payload: None,
        toggle=("shipping", ("providers", "delhivery", "enabled")),
    ),
}


def get_provider(name: str) -> WebhookProvider:
    try:
        return PROVIDERS[name]
    except KeyError:
        raise UnknownProviderError(f"Unknown webhook provider: {name}") from None
