from __future__ import annotations

from pydantic import Field

from core.settings.base import PinkFlowBaseSettings


class WebhookSettings(PinkFlowBaseSettings):
    """
    Webhook delivery settings.
    """

    max_attempts: int = Field(default=3, ge=1, alias="PINKFLOW_WEBHOOK_MAX_ATTEMPTS")
    backoff_seconds: float = Field(default=1.0, ge=0, alias="PINKFLOW_WEBHOOK_BACKOFF_SECONDS")
    backoff_multiplier: float = Field(default=2.0, ge=1, alias="PINKFLOW_WEBHOOK_BACKOFF_MULTIPLIER")
    max_backoff_seconds: float = Field(default=60.0, ge=0, alias="PINKFLOW_WEBHOOK_MAX_BACKOFF_SECONDS")
    timeout_seconds: float = Field(default=10.0, gt=0, alias="PINKFLOW_WEBHOOK_TIMEOUT_SECONDS")
