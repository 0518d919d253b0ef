"""Event ingestion queue - deduplicated intake and background dispatch of events."""

from __future__ import annotations

import asyncio
from typing import Any

from core.application.interfaces import IIdempotencyIndex
from core.domain.enums import DeliveryStatus, EventProcessingStatus
from core.domain.events.event_types import WorkflowEvents, matches_event_type
from core.domain.exceptions import InvalidStateError, NotFoundError, ValidationError
from core.domain.repositories.record_store import EVENTS, RecordStore
from pinkflow_sdk.logging import get_logger
from pinkflow_sdk.utils.datetime import utc_now

from .bus import InMemoryEventBus
from .events import ENGINE_SOURCE, Event, IngestOutcome, IngestResult
from .state_machine import WorkflowStateMachine
from .tasks import TaskSupervisor
from .webhooks import WebhookDispatcher


class EventIngestionQueue:
    """Accepts inbound events and dispatches them in the background.

    Each accepted event goes to the workflow steps waiting for its type and
    to the webhook dispatcher. The two groups run concurrently; an
    unexpected error in either marks the event failed.
    """

    def __init__(
        self,
        store: RecordStore,
        state_machine: WorkflowStateMachine,
        webhooks: WebhookDispatcher,
        idempotency: IIdempotencyIndex,
        tasks: TaskSupervisor | None = None,
        batch_size: int = 10,
        processing_interval_seconds: float = 1.0,
        dispatch_on_ingest: bool = True,
    ) -> None:
        """Initialize ingestion queue.

        Args:
            store: Record store holding events
            state_machine: State machine whose waiting steps receive events
            webhooks: Dispatcher for webhook delivery
            idempotency: Index used to deduplicate idempotency keys
            tasks: Supervisor for dispatch tasks
            batch_size: Events picked up per ``process_pending`` call
            processing_interval_seconds: Period of the pending-event loop
            dispatch_on_ingest: Dispatch right away instead of waiting for
                the loop or a reprocess
        """
        self._store = store
        self._state_machine = state_machine
        self._webhooks = webhooks
        self._idempotency = idempotency
        self._tasks = tasks or TaskSupervisor()
        self._batch_size = batch_size
        self._interval = processing_interval_seconds
        self._dispatch_on_ingest = dispatch_on_ingest
        self._ingest_lock = asyncio.Lock()
        self._inflight: set[str] = set()
        self._logger = get_logger("orchestration.ingestion")

    def attach(self, bus: InMemoryEventBus) -> None:
        """Feed the engine's own lifecycle events through the queue."""
        bus.subscribe(WorkflowEvents.ALL, self._on_lifecycle_event)

    async def _on_lifecycle_event(self, event: Event) -> None:
        await self._accept(event)

    async def ingest(
        self,
        event_type: str,
        source: str,
        data: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> IngestResult:
        """Store an event unless its idempotency key was already seen.

        Returns:
            IngestResult; for duplicates it carries the original event

        Raises:
            ValidationError: If event_type or source is empty
        """
        if not isinstance(event_type, str) or not event_type.strip():
            raise ValidationError("eventType is required")
        if not isinstance(source, str) or not source.strip():
            raise ValidationError("source is required")
        if data is not None and not isinstance(data, dict):
            raise ValidationError("Event data must be an object")

        event = Event.create(
            event_type.strip(), source.strip(), data, idempotency_key=idempotency_key or None
        )
        return await self._accept(event)

    async def _accept(self, event: Event) -> IngestResult:
        key = event.idempotency_key
        async with self._ingest_lock:
            if key:
                original = await self._claim(key, event)
                if original is not None:
                    self._logger.info(
                        "event_duplicate",
                        event_id=original.id,
                        event_type=event.event_type,
                        idempotency_key=key,
                    )
                    return IngestResult(IngestOutcome.DUPLICATE, original)

            try:
                await self._store.put(EVENTS, event.id, event.to_dict())
            except Exception:
                if key:
                    await self._idempotency.release(key)
                raise

        self._logger.info(
            "event_ingested",
            event_id=event.id,
            event_type=event.event_type,
            source=event.source,
        )
        if self._dispatch_on_ingest:
            self._schedule(event.id)
        return IngestResult(IngestOutcome.ACCEPTED, event)

    async def _claim(self, key: str, event: Event) -> Event | None:
        """Claim the key for this event, or return the event already holding it.

        A key whose event is gone from the store (the index outlived an
        in-memory store) is released and claimed again.
        """
        existing_id = await self._idempotency.claim(key, event.id)
        if existing_id is None:
            return None
        record = await self._store.get(EVENTS, existing_id)
        if record is not None:
            return Event.from_dict(record)

        self._logger.warning(
            "idempotency_key_stale",
            idempotency_key=key,
            stale_event_id=existing_id,
            event_id=event.id,
        )
        await self._idempotency.release(key)
        existing_id = await self._idempotency.claim(key, event.id)
        if existing_id is None:
            return None
        record = await self._store.get(EVENTS, existing_id)
        if record is None:
            raise InvalidStateError(
                f"Event for idempotency key {key!r} is still being stored",
                details={"idempotencyKey": key, "eventId": existing_id},
            )
        return Event.from_dict(record)

    async def get(self, event_id: str) -> Event:
        record = await self._store.get(EVENTS, event_id)
        if record is None:
            raise NotFoundError(f"Event {event_id} not found", details={"eventId": event_id})
        return Event.from_dict(record)

    async def list(
        self,
        status: EventProcessingStatus | None = None,
        event_type: str | None = None,
    ) -> list[Event]:
        """Stored events, newest first.

        Args:
            status: Only events in this processing status
            event_type: Exact type or pattern (``prefix.*``, ``*``)
        """
        events = [Event.from_dict(record) for record in await self._store.list(EVENTS)]
        if status is not None:
            events = [e for e in events if e.processing_status == status]
        if event_type:
            events = [e for e in events if matches_event_type(event_type, e.event_type)]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events

    async def reprocess(self, event_id: str) -> Event:
        """Reset an event to pending and dispatch it again.

        Raises:
            NotFoundError: If the event does not exist
            InvalidStateError: If the event is being dispatched right now
        """
        if event_id in self._inflight:
            raise InvalidStateError(
                f"Event {event_id} is already being processed", details={"eventId": event_id}
            )
        event = await self.get(event_id)
        event.processing_status = EventProcessingStatus.PENDING
        event.processing_result = None
        event.error = None
        event.processed_at = None
        await self._store.put(EVENTS, event.id, event.to_dict())

        self._logger.info("event_reprocess_requested", event_id=event.id, event_type=event.event_type)
        self._schedule(event.id)
        return event

    async def process_pending(self, limit: int | None = None) -> int:
        """Schedule dispatch for up to ``limit`` pending events, oldest first.

        Returns:
            Number of events scheduled
        """
        limit = self._batch_size if limit is None else limit
        pending = await self.list(status=EventProcessingStatus.PENDING)
        pending.sort(key=lambda e: e.timestamp)

        scheduled = 0
        for event in pending:
            if scheduled >= limit:
                break
            if self._schedule(event.id):
                scheduled += 1
        return scheduled

    async def run(self) -> None:
        """Retry events left pending, every processing interval, until cancelled."""
        self._logger.info("event_loop_started", interval_seconds=self._interval)
        while True:
            await asyncio.sleep(self._interval)
            try:
                scheduled = await self.process_pending()
            except Exception as exc:
                self._logger.error("event_loop_error", error=str(exc), exc_info=True)
                continue
            if scheduled:
                self._logger.debug("pending_events_scheduled", count=scheduled)

    def _schedule(self, event_id: str) -> bool:
        if event_id in self._inflight:
            return False
        self._inflight.add(event_id)
        self._tasks.spawn(self._dispatch(event_id), name=f"event:{event_id}")
        return True

    async def _dispatch(self, event_id: str) -> None:
        try:
            record = await self._store.get(EVENTS, event_id)
            if record is None:
                return
            event = Event.from_dict(record)
            if event.processing_status != EventProcessingStatus.PENDING:
                return

            workflows, deliveries = await asyncio.gather(
                self._dispatch_to_workflows(event),
                self._dispatch_to_webhooks(event),
                return_exceptions=True,
            )

            errors = []
            result: dict[str, Any] = {}
            if isinstance(workflows, BaseException):
                errors.append(f"workflows: {workflows}")
            else:
                result["advancedSteps"] = workflows
            if isinstance(deliveries, BaseException):
                errors.append(f"webhooks: {deliveries}")
            else:
                result["webhookDeliveries"] = deliveries

            event.processing_result = result
            event.processed_at = utc_now()
            if errors:
                event.processing_status = EventProcessingStatus.FAILED
                event.error = "; ".join(errors)
                self._logger.error(
                    "event_processing_failed",
                    event_id=event.id,
                    event_type=event.event_type,
                    error=event.error,
                )
            else:
                event.processing_status = EventProcessingStatus.PROCESSED
                event.error = None
                self._logger.info(
                    "event_processed",
                    event_id=event.id,
                    event_type=event.event_type,
                    advanced_steps=len(result["advancedSteps"]),
                    deliveries=result["webhookDeliveries"]["total"],
                )
            await self._store.put(EVENTS, event.id, event.to_dict())
        finally:
            self._inflight.discard(event_id)

    async def _dispatch_to_workflows(self, event: Event) -> list[dict[str, str]]:
        advanced = []
        payload = {
            "eventId": event.id,
            "eventType": event.event_type,
            "source": event.source,
            "data": event.data,
        }
        for workflow_id, step_id in await self._state_machine.find_waiting(event.event_type):
            if event.source == ENGINE_SOURCE and event.correlation_id == workflow_id:
                # A workflow never advances on its own lifecycle events
                continue
            try:
                await self._state_machine.advance(workflow_id, step_id, payload)
            except (InvalidStateError, NotFoundError) as exc:
                self._logger.info(
                    "waiting_step_moved_on",
                    event_id=event.id,
                    workflow_id=workflow_id,
                    step_id=step_id,
                    reason=exc.message,
                )
                continue
            advanced.append({"workflowId": workflow_id, "stepId": step_id})
        return advanced

    async def _dispatch_to_webhooks(self, event: Event) -> dict[str, int]:
        records = await self._webhooks.notify(event)
        delivered = sum(1 for r in records if r.status == DeliveryStatus.DELIVERED)
        return {"total": len(records), "delivered": delivered, "failed": len(records) - delivered}
