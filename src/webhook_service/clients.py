"""HTTP clients for the platform services that job handlers call into.

Order, payment, refund and shipment state belongs to the storefront backend;
email rendering and transport belong to the mail service. Both are reached
over their internal HTTP APIs.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

from aiohttp import ClientError, ClientSession, ClientTimeout

from webhook_service.core.exceptions import CollaboratorError


@dataclass
class MailResult:
    success: bool
    error: str | None = None


class CommerceClient(Protocol):
    async def update_payment_status(self, gateway_payment_id: str, status: str) -> None: ...

    async def update_refund_status(self, gateway_refund_id: str, status: str) -> None: ...

    async def update_shipment_status(self, awb: str, update: dict[str, Any]) -> None: ...

    async def process_refund(self, refund_id: str, payment_id: str) -> None: ...

    async def create_shipment(self, order_id: str, pickup_details: dict[str, Any]) -> None: ...

    async def sync_tracking(self, awb: str) -> None: ...

    async def list_open_shipment_awbs(self) -> list[str]: ...


class MailClient(Protocol):
    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> MailResult: ...


class _JsonApiClient:
    def __init__(self, session: ClientSession, base_url: str, *, timeout_s: float):
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s

    async def _request(
        self, method: str, path: str, *, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        timeout = ClientTimeout(total=self._timeout_s)
        try:
            async with self._session.request(method, url, json=body, timeout=timeout) as resp:
                if not 200 <= resp.status < 300:
                    text = await resp.text()
                    raise CollaboratorError(f"HTTP {resp.status} from {path}: {text[:2000]}")
                if resp.content_type == "application/json":
                    data = await resp.json()
                    return data if isinstance(data, dict) else {}
                return {}
        except asyncio.TimeoutError as exc:
            raise CollaboratorError(f"Timed out after {self._timeout_s:g}s calling {path}") from exc
        except ClientError as exc:
            raise CollaboratorError(f"{type(exc).__name__} calling {path}: {exc}") from exc

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", path, body=body)

    async def _get(self, path: str) -> dict[str, Any]:
        return await self._request("GET", path)


class CommerceApiClient(_JsonApiClient):
    """Storefront backend internal API. Every call is safe to repeat."""

    async def update_payment_status(self, gateway_payment_id: str, status: str) -> None:
        await self._post(
            "/payments/status",
            {"gateway_payment_id": gateway_payment_id, "status": status},
        )

    async def update_refund_status(self, gateway_refund_id: str, status: str) -> None:
        await self._post(
            "/refunds/status",
            {"gateway_refund_id": gateway_refund_id, "status": status},
        )

    async def update_shipment_status(self, awb: str, update: dict[str, Any]) -> None:
        await self._post(f"/shipments/{awb}/status", update)

    async def process_refund(self, refund_id: str, payment_id: str) -> None:
        await self._post(f"/refunds/{refund_id}/process", {"payment_id": payment_id})

    async def create_shipment(self, order_id: str, pickup_details: dict[str, Any]) -> None:
        await self._post("/shipments", {"order_id": order_id, "pickup_details": pickup_details})

    async def sync_tracking(self, awb: str) -> None:
        await self._post(f"/shipments/{awb}/tracking/sync", {})

    async def list_open_shipment_awbs(self) -> list[str]:
        """AWBs of shipments that are neither delivered nor failed."""
        data = await self._get("/shipments/open")
        return [str(item["awb"]) for item in data.get("items", []) if item.get("awb")]


class MailApiClient(_JsonApiClient):
    async def send(self, to: str, subject: str, html: str, text: str | None = None) -> MailResult:
        try:
            data = await self._post("/send", {"to": to, "subject": subject, "html": html, "text": text})
        except CollaboratorError as exc:
            return MailResult(success=False, error=str(exc))
        return MailResult(success=bool(data.get("success", True)), error=data.get("error"))
