from __future__ import annotations

from typing import Optional

from pydantic import Field

from core.settings.base import PinkFlowBaseSettings


class EventSettings(PinkFlowBaseSettings):
    """
    Event ingestion settings.
    """

    enabled: bool = Field(default=True, alias="PINKFLOW_EVENTS_ENABLED")
    batch_size: int = Field(default=10, ge=1, alias="PINKFLOW_EVENTS_BATCH_SIZE")
    processing_interval_ms: int = Field(default=1000, ge=10, alias="PINKFLOW_EVENTS_PROCESSING_INTERVAL_MS")
    dedup_retention_seconds: float = Field(default=86400.0, gt=0, alias="PINKFLOW_EVENTS_DEDUP_RETENTION_SECONDS")

    # When set, idempotency keys live in Redis instead of process memory
    redis_url: Optional[str] = Field(default=None, alias="PINKFLOW_REDIS_URL")
