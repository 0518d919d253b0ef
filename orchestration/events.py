"""Orchestration events - Event, IngestOutcome, IngestResult."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from core.domain.enums import EventProcessingStatus
from pinkflow_sdk.utils.datetime import from_iso, to_iso, utc_now

ENGINE_SOURCE = "pinkflow.engine"


@dataclass
class Event:
    """An inbound or engine-emitted event.

    Only the processing fields change after the event is stored.
    """

    id: str
    event_type: str
    source: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    processing_status: EventProcessingStatus = EventProcessingStatus.PENDING
    processing_result: dict[str, Any] | None = None
    error: str | None = None
    idempotency_key: str | None = None
    processed_at: datetime | None = None
    correlation_id: str | None = None

    @classmethod
    def create(
        cls,
        event_type: str,
        source: str,
        data: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        correlation_id: str | None = None,
        timestamp: datetime | None = None,
    ) -> "Event":
        return cls(
            id=f"evt-{uuid.uuid4().hex}",
            event_type=event_type,
            source=source,
            data=dict(data or {}),
            timestamp=timestamp or utc_now(),
            idempotency_key=idempotency_key,
            correlation_id=correlation_id,
        )

    @property
    def name(self) -> str:
        return self.event_type

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "eventType": self.event_type,
            "source": self.source,
            "data": self.data,
            "timestamp": to_iso(self.timestamp),
            "processingStatus": self.processing_status.value,
            "processingResult": self.processing_result,
            "error": self.error,
            "idempotencyKey": self.idempotency_key,
            "processedAt": to_iso(self.processed_at),
            "correlationId": self.correlation_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        return cls(
            id=data["id"],
            event_type=data["eventType"],
            source=data["source"],
            data=data.get("data") or {},
            timestamp=from_iso(data.get("timestamp")) or utc_now(),
            processing_status=EventProcessingStatus(data.get("processingStatus", "pending")),
            processing_result=data.get("processingResult"),
            error=data.get("error"),
            idempotency_key=data.get("idempotencyKey"),
            processed_at=from_iso(data.get("processedAt")),
            correlation_id=data.get("correlationId"),
        )


class IngestOutcome(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"


@dataclass
class IngestResult:
    """Result of ingesting one event."""

    outcome: IngestOutcome
    event: Event

    @property
    def duplicate(self) -> bool:
        return self.outcome == IngestOutcome.DUPLICATE
