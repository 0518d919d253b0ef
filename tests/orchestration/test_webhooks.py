"""Tests for WebhookDispatcher - matching, signing and retry."""

import pytest

from core.domain.enums import DeliveryStatus, WebhookStatus
from core.domain.exceptions import NotFoundError, TransientServiceError, ValidationError
from orchestration.events import Event
from orchestration.webhooks import (
    DELIVERY_HEADER,
    EVENT_HEADER,
    SIGNATURE_HEADER,
    is_retryable_status,
    sign_payload,
    verify_signature,
)
from tests.fakes import FakeWebhookSender, build_engine


def formation_completed() -> Event:
    return Event.create("business.formation.completed", "northwest", {"entityId": "llc-1"})


@pytest.mark.asyncio
async def test_only_matching_webhooks_receive_event(sender):
    engine = build_engine(sender=sender)
    business = await engine.webhooks.register("https://biz.example/hook", ["business.formation.*"])
    await engine.webhooks.register("https://vr.example/hook", ["v4deaf.*"])

    await engine.events.ingest("business.formation.completed", "northwest", {"entityId": "llc-1"})
    assert await engine.tasks.drain(timeout=2)

    assert len(sender.requests_for("https://biz.example/hook")) == 1
    assert sender.requests_for("https://vr.example/hook") == []

    request = sender.requests_for("https://biz.example/hook")[0]
    assert request["headers"][EVENT_HEADER] == "business.formation.completed"
    assert request["body"]["webhookId"] == business.id
    assert request["body"]["data"] == {"entityId": "llc-1"}
    assert SIGNATURE_HEADER not in request["headers"]


@pytest.mark.asyncio
async def test_signed_delivery_verifies(sender):
    engine = build_engine(sender=sender)
    registration = await engine.webhooks.register("https://biz.example/hook", ["*"], secret="s3cret")

    records = await engine.webhooks.notify(formation_completed(), [registration])

    request = sender.requests[0]
    signature = request["headers"][SIGNATURE_HEADER]
    assert signature == sign_payload("s3cret", request["raw"])
    assert verify_signature("s3cret", request["raw"], signature)
    assert not verify_signature("other", request["raw"], signature)
    assert not verify_signature("s3cret", request["raw"], None)
    assert request["headers"][DELIVERY_HEADER] == records[0].id


@pytest.mark.asyncio
async def test_retryable_status_is_retried_until_success(sleep):
    sender = FakeWebhookSender([503, 200])
    engine = build_engine(sender=sender, sleep=sleep)
    registration = await engine.webhooks.register("https://biz.example/hook", ["business.*"])

    [record] = await engine.webhooks.notify(formation_completed(), [registration])

    assert record.status == DeliveryStatus.DELIVERED
    assert record.attempts == 2
    assert record.last_status_code == 200
    assert record.completed_at is not None


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    sender = FakeWebhookSender([400])
    engine = build_engine(sender=sender)
    registration = await engine.webhooks.register("https://biz.example/hook", ["business.*"])

    [record] = await engine.webhooks.notify(formation_completed(), [registration])

    assert record.status == DeliveryStatus.FAILED
    assert record.attempts == 1
    assert record.error == "HTTP 400"


@pytest.mark.asyncio
async def test_transport_errors_exhaust_attempts():
    sender = FakeWebhookSender([TransientServiceError("connection refused")] * 3)
    engine = build_engine(sender=sender)
    registration = await engine.webhooks.register("https://biz.example/hook", ["business.*"])

    [record] = await engine.webhooks.notify(formation_completed(), [registration])

    assert record.status == DeliveryStatus.FAILED
    assert record.attempts == 3
    assert record.last_status_code is None
    assert record.error == "connection refused"


@pytest.mark.asyncio
async def test_deliveries_are_recorded_per_webhook(sender):
    engine = build_engine(sender=sender)
    registration = await engine.webhooks.register("https://biz.example/hook", ["business.*"])

    await engine.webhooks.notify(formation_completed(), [registration])
    await engine.webhooks.notify(formation_completed(), [registration])

    deliveries = await engine.webhooks.deliveries(registration.id)
    assert len(deliveries) == 2
    assert all(d.status == DeliveryStatus.DELIVERED for d in deliveries)

    with pytest.raises(NotFoundError):
        await engine.webhooks.deliveries("wh-missing")


@pytest.mark.asyncio
async def test_inactive_webhook_is_skipped(sender):
    engine = build_engine(sender=sender)
    registration = await engine.webhooks.register("https://biz.example/hook", ["*"])

    paused = await engine.webhooks.set_status(registration.id, WebhookStatus.INACTIVE)
    assert paused.status == WebhookStatus.INACTIVE

    assert await engine.webhooks.notify(formation_completed()) == []
    assert sender.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url, events",
    [
        ("ftp://biz.example/hook", ["*"]),
        ("not a url", ["*"]),
        ("https://biz.example/hook", []),
        ("https://biz.example/hook", "business.*"),
        ("https://biz.example/hook", ["business.*.done"]),
    ],
)
async def test_register_validates_url_and_patterns(url, events):
    engine = build_engine()

    with pytest.raises(ValidationError):
        await engine.webhooks.register(url, events)


@pytest.mark.asyncio
async def test_registration_never_exposes_secret():
    engine = build_engine()
    registration = await engine.webhooks.register("https://biz.example/hook", ["*"], secret="s3cret")

    public = registration.to_dict()
    assert public["hasSecret"] is True
    assert "secret" not in public
    assert (await engine.webhooks.get(registration.id)).secret == "s3cret"


@pytest.mark.asyncio
async def test_unregister():
    engine = build_engine()
    registration = await engine.webhooks.register("https://biz.example/hook", ["*"])

    await engine.webhooks.unregister(registration.id)
    assert await engine.webhooks.list() == []
    with pytest.raises(NotFoundError):
        await engine.webhooks.unregister(registration.id)


@pytest.mark.parametrize("status_code, expected", [(408, True), (429, True), (500, True), (503, True), (400, False), (404, False)])
def test_retryable_status(status_code, expected):
    assert is_retryable_status(status_code) is expected
