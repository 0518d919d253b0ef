"""Webhook dispatcher - registrations, signed delivery with retry, delivery records."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
from collections.abc import Awaitable, Callable, Sequence
from typing import Any
from urllib.parse import urlparse

from core.application.interfaces import IWebhookSender
from core.domain.enums import DeliveryStatus, WebhookStatus
from core.domain.events.event_types import is_valid_pattern, matches_any
from core.domain.exceptions import NotFoundError, TransientServiceError, ValidationError
from core.domain.repositories.record_store import WEBHOOK_DELIVERIES, WEBHOOKS, RecordStore
from pinkflow_sdk.logging import get_logger
from pinkflow_sdk.utils.datetime import to_iso, utc_now

from .events import Event
from .models import DeliveryRecord, WebhookRegistration, new_id
from .workflow import RetryPolicy

EVENT_HEADER = "X-PinkFlow-Event"
DELIVERY_HEADER = "X-PinkFlow-Delivery"
SIGNATURE_HEADER = "X-PinkFlow-Signature"


def sign_payload(secret: str, body: bytes) -> str:
    """``sha256=<hex>`` HMAC of the raw request body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Constant-time check of a received signature header."""
    if not signature:
        return False
    return hmac.compare_digest(sign_payload(secret, body), signature)


def is_retryable_status(status_code: int) -> bool:
    return status_code in (408, 429) or status_code >= 500


class WebhookDispatcher:
    """Delivers events to every active webhook whose patterns match.

    Delivery failures are recorded and logged; ``notify`` never raises.
    """

    def __init__(
        self,
        store: RecordStore,
        sender: IWebhookSender,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = 10.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._sender = sender
        self._retry_policy = retry_policy or RetryPolicy(max_attempts=3, backoff_seconds=1.0)
        self._timeout_seconds = timeout_seconds
        self._sleep = sleep
        self._logger = get_logger("orchestration.webhooks")

    # Registrations

    async def register(
        self, url: str, events: Sequence[str], secret: str | None = None
    ) -> WebhookRegistration:
        """Register a webhook.

        Raises:
            ValidationError: If the URL is not http(s) or no valid event
                pattern is given
        """
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError("Webhook url must be an absolute http(s) URL", details={"url": url})
        if isinstance(events, str) or not events:
            raise ValidationError("Webhook requires a non-empty list of event patterns")
        invalid = [pattern for pattern in events if not is_valid_pattern(pattern)]
        if invalid:
            raise ValidationError("Invalid event patterns", details={"patterns": invalid})

        registration = WebhookRegistration(
            id=new_id("wh"), url=url, events=list(events), secret=secret or None
        )
        await self._store.put(WEBHOOKS, registration.id, registration.to_record())
        self._logger.info(
            "webhook_registered",
            webhook_id=registration.id,
            url=url,
            events=registration.events,
            signed=bool(registration.secret),
        )
        return registration

    async def unregister(self, webhook_id: str) -> None:
        if not await self._store.delete(WEBHOOKS, webhook_id):
            raise NotFoundError(f"Webhook {webhook_id} not found", details={"webhookId": webhook_id})
        self._logger.info("webhook_unregistered", webhook_id=webhook_id)

    async def get(self, webhook_id: str) -> WebhookRegistration:
        record = await self._store.get(WEBHOOKS, webhook_id)
        if record is None:
            raise NotFoundError(f"Webhook {webhook_id} not found", details={"webhookId": webhook_id})
        return WebhookRegistration.from_record(record)

    async def list(self, status: WebhookStatus | None = None) -> list[WebhookRegistration]:
        registrations = [
            WebhookRegistration.from_record(record) for record in await self._store.list(WEBHOOKS)
        ]
        if status is not None:
            registrations = [r for r in registrations if r.status == status]
        registrations.sort(key=lambda r: r.created_at)
        return registrations

    async def set_status(self, webhook_id: str, status: WebhookStatus) -> WebhookRegistration:
        registration = await self.get(webhook_id)
        registration.status = status
        await self._store.put(WEBHOOKS, registration.id, registration.to_record())
        return registration

    async def deliveries(self, webhook_id: str) -> list[DeliveryRecord]:
        """Delivery records of one webhook, oldest first.

        Raises:
            NotFoundError: If the webhook does not exist
        """
        await self.get(webhook_id)
        records = [
            DeliveryRecord.from_dict(record)
            for record in await self._store.list(WEBHOOK_DELIVERIES)
            if record.get("webhookId") == webhook_id
        ]
        records.sort(key=lambda r: r.created_at)
        return records

    # Delivery

    async def notify(
        self, event: Event, registrations: Sequence[WebhookRegistration] | None = None
    ) -> list[DeliveryRecord]:
        """Deliver an event to every matching active registration.

        Args:
            event: Event to deliver
            registrations: Candidates; defaults to every stored registration

        Returns:
            One delivery record per matching registration
        """
        if registrations is None:
            registrations = await self.list(status=WebhookStatus.ACTIVE)
        targets = [
            r
            for r in registrations
            if r.status == WebhookStatus.ACTIVE and matches_any(r.events, event.event_type)
        ]
        if not targets:
            return []

        outcomes = await asyncio.gather(
            *(self._deliver(event, registration) for registration in targets),
            return_exceptions=True,
        )

        records = []
        for registration, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                self._logger.error(
                    "webhook_delivery_crashed",
                    webhook_id=registration.id,
                    event_id=event.id,
                    error=str(outcome),
                    exc_info=outcome,
                )
                continue
            records.append(outcome)
        return records

    def build_body(self, event: Event, registration: WebhookRegistration) -> bytes:
        payload = {
            "id": event.id,
            "eventType": event.event_type,
            "source": event.source,
            "data": event.data,
            "timestamp": to_iso(event.timestamp),
            "webhookId": registration.id,
        }
        return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")

    async def _deliver(self, event: Event, registration: WebhookRegistration) -> DeliveryRecord:
        record = DeliveryRecord(
            id=new_id("dlv"),
            webhook_id=registration.id,
            event_id=event.id,
            event_type=event.event_type,
            url=registration.url,
        )
        await self._store.put(WEBHOOK_DELIVERIES, record.id, record.to_dict())

        body = self.build_body(event, registration)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "PinkFlow-Webhooks/1.0",
            EVENT_HEADER: event.event_type,
            DELIVERY_HEADER: record.id,
        }
        if registration.secret:
            headers[SIGNATURE_HEADER] = sign_payload(registration.secret, body)

        policy = self._retry_policy
        for attempt in range(1, policy.max_attempts + 1):
            record.attempts = attempt
            try:
                status_code = await self._sender.send(
                    registration.url, body, headers, self._timeout_seconds
                )
            except TransientServiceError as exc:
                record.last_status_code = None
                record.error = exc.message
                retryable = True
            else:
                record.last_status_code = status_code
                if 200 <= status_code < 300:
                    record.status = DeliveryStatus.DELIVERED
                    record.error = None
                    break
                record.error = f"HTTP {status_code}"
                retryable = is_retryable_status(status_code)

            if not retryable or attempt == policy.max_attempts:
                break
            delay = policy.delay_for(attempt)
            if delay > 0:
                await self._sleep(delay)

        if record.status != DeliveryStatus.DELIVERED:
            record.status = DeliveryStatus.FAILED
            self._logger.warning(
                "webhook_delivery_failed",
                webhook_id=registration.id,
                event_id=event.id,
                url=registration.url,
                attempts=record.attempts,
                status_code=record.last_status_code,
                error=record.error,
            )
        else:
            self._logger.info(
                "webhook_delivered",
                webhook_id=registration.id,
                event_id=event.id,
                attempts=record.attempts,
            )

        record.completed_at = utc_now()
        await self._store.put(WEBHOOK_DELIVERIES, record.id, record.to_dict())
        return record
