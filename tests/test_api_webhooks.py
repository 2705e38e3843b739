from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock
from uuid import UUID

import pytest

from tests.utils import DELHIVERY_ENABLED, delhivery_event, encode, razorpay_event, signed_headers
from webhook_service.domain.enums import JobStatus, JobType

JSON = {"Content-Type": "application/json"}


async def _post(client, provider: str, raw: bytes, headers: dict | None = None):
    return await client.post(f"/webhook/{provider}", data=raw, headers=headers or JSON)


@pytest.mark.asyncio
async def test_razorpay_webhook_is_stored_and_queued(service_client, repositories, razorpay_secret):
    raw = encode(razorpay_event(payment_id="pay_42"))
    resp = await _post(service_client, "razorpay", raw, signed_headers(raw, razorpay_secret))
    assert resp.status == 200
    body = await resp.json()
    assert body["ok"] is True
    assert body["message"] == "Webhook received"
    assert body["signatureValid"] is True

    event = await repositories.events.get(UUID(body["eventId"]))
    assert event.source == "razorpay"
    assert event.event_type == "payment.captured"
    assert event.external_id == "payment.captured:pay_42"
    assert event.signature_valid is True
    assert event.processed is False
    assert "X-Razorpay-Signature" in event.headers

    jobs = list(repositories.jobs.jobs.values())
    assert len(jobs) == 1
    assert jobs[0].type == JobType.WEBHOOK_PROCESS
    assert jobs[0].status == JobStatus.PENDING
    assert jobs[0].payload["webhook_event_id"] == str(event.id)


@pytest.mark.asyncio
async def test_invalid_signature_is_recorded_not_rejected(service_client, repositories, razorpay_secret):
    raw = encode(razorpay_event())
    headers = {**JSON, "X-Razorpay-Signature": "deadbeef"}
    resp = await _post(service_client, "razorpay", raw, headers)
    assert resp.status == 200
    body = await resp.json()
    assert body["ok"] is True
    assert body["signatureValid"] is False

    event = await repositories.events.get(UUID(body["eventId"]))
    assert event.signature_valid is False
    assert len(repositories.jobs.jobs) == 1


@pytest.mark.asyncio
async def test_unsigned_delivery_with_secret_configured_is_accepted_as_valid(
    service_client, repositories, razorpay_secret
):
    resp = await _post(service_client, "razorpay", encode(razorpay_event()))
    body = await resp.json()
    assert body["ok"] is True
    assert body["signatureValid"] is True

    event = await repositories.events.get(UUID(body["eventId"]))
    assert event.signature_valid is True
    assert event.signature is None


@pytest.mark.asyncio
async def test_unsigned_delhivery_delivery_is_accepted_as_valid(
    service_client, repositories, delhivery_secret
):
    repositories.platform_settings.values.update(DELHIVERY_ENABLED)
    resp = await _post(service_client, "delhivery", encode(delhivery_event()))
    assert (await resp.json())["signatureValid"] is True


@pytest.mark.asyncio
async def test_no_secret_configured_accepts_as_valid(service_client, repositories):
    resp = await _post(service_client, "razorpay", encode(razorpay_event()))
    body = await resp.json()
    assert body["ok"] is True
    assert body["signatureValid"] is True


@pytest.mark.asyncio
async def test_identical_redelivery_reuses_event_and_job(service_client, repositories):
    raw = encode(razorpay_event())
    first = await (await _post(service_client, "razorpay", raw)).json()
    second = await (await _post(service_client, "razorpay", raw)).json()

    assert first["eventId"] == second["eventId"]
    assert len(repositories.events.events) == 1
    assert len(repositories.jobs.jobs) == 1


@pytest.mark.asyncio
async def test_concurrent_identical_deliveries_create_one_job(service_client, repositories):
    raw = encode(razorpay_event(payment_id="pay_race"))
    responses = await asyncio.gather(
        *(_post(service_client, "razorpay", raw) for _ in range(3))
    )
    bodies = [await resp.json() for resp in responses]

    assert {body["eventId"] for body in bodies} == {bodies[0]["eventId"]}
    assert len(repositories.events.events) == 1
    assert len(repositories.jobs.jobs) == 1


@pytest.mark.asyncio
async def test_redelivery_after_processing_is_acknowledged_as_duplicate(service_client, repositories):
    raw = encode(razorpay_event(payment_id="pay_1"))
    first = await (await _post(service_client, "razorpay", raw)).json()
    await repositories.events.mark_processed(UUID(first["eventId"]))

    resp = await _post(service_client, "razorpay", raw)
    assert resp.status == 200
    assert await resp.json() == {"ok": True, "message": "Event already processed"}
    assert len(repositories.events.events) == 1
    assert len(repositories.jobs.jobs) == 1


@pytest.mark.asyncio
async def test_same_payment_id_with_different_body_is_duplicate(service_client, repositories):
    first = await (
        await _post(service_client, "razorpay", encode(razorpay_event(payment_id="pay_1")))
    ).json()
    await repositories.events.mark_processed(UUID(first["eventId"]))

    # Razorpay retries carry a new created_at but the same payment
    raw = encode(razorpay_event(payment_id="pay_1", created_at=1714550000))
    body = await (await _post(service_client, "razorpay", raw)).json()
    assert body["message"] == "Event already processed"

    # a different event for the same payment is not a duplicate
    raw = encode(razorpay_event("payment.failed", payment_id="pay_1"))
    body = await (await _post(service_client, "razorpay", raw)).json()
    assert body["message"] == "Webhook received"


@pytest.mark.asyncio
async def test_delhivery_disabled_returns_410_without_writes(service_client, repositories):
    resp = await _post(service_client, "delhivery", encode(delhivery_event()))
    assert resp.status == 410
    body = await resp.json()
    assert body["ok"] is False
    assert "disabled" in body["error"]
    assert repositories.events.events == {}
    assert repositories.jobs.jobs == {}


@pytest.mark.asyncio
async def test_delhivery_enabled_with_base64_signature(service_client, repositories, delhivery_secret):
    repositories.platform_settings.values.update(DELHIVERY_ENABLED)
    raw = encode(delhivery_event(status="Out for Delivery"))
    resp = await _post(service_client, "delhivery", raw, signed_headers(raw, delhivery_secret, "delhivery"))
    assert resp.status == 200
    body = await resp.json()
    assert body["signatureValid"] is True

    event = await repositories.events.get(UUID(body["eventId"]))
    assert event.event_type == "Out for Delivery"
    assert event.external_id is None


@pytest.mark.asyncio
async def test_unknown_provider_is_404(service_client, repositories):
    resp = await _post(service_client, "paypal", encode({"event": "x"}))
    assert resp.status == 404
    assert (await resp.json())["ok"] is False


@pytest.mark.asyncio
async def test_invalid_json_is_400(service_client, repositories):
    resp = await _post(service_client, "razorpay", b"{not json")
    assert resp.status == 400
    assert repositories.events.events == {}


@pytest.mark.asyncio
async def test_storage_error_is_acknowledged(service_client, repositories):
    repositories.events.insert_with_job = AsyncMock(side_effect=RuntimeError("connection reset"))
    resp = await _post(service_client, "razorpay", encode(razorpay_event()))
    assert resp.status == 200
    assert await resp.json() == {"ok": False, "error": "Webhook processing failed"}
    assert repositories.jobs.jobs == {}
