from __future__ import annotations

from typing import Optional

from pydantic import Field

from core.settings.base import PinkFlowBaseSettings


class ExecutorSettings(PinkFlowBaseSettings):
    """
    Step executor timeout and retry settings.
    """

    timeout_seconds: float = Field(default=30.0, gt=0, alias="PINKFLOW_STEP_TIMEOUT_SECONDS")
    max_attempts: int = Field(default=3, ge=1, alias="PINKFLOW_STEP_MAX_ATTEMPTS")
    backoff_seconds: float = Field(default=0.5, ge=0, alias="PINKFLOW_STEP_BACKOFF_SECONDS")
    backoff_multiplier: float = Field(default=2.0, ge=1, alias="PINKFLOW_STEP_BACKOFF_MULTIPLIER")
    max_backoff_seconds: float = Field(default=30.0, ge=0, alias="PINKFLOW_STEP_MAX_BACKOFF_SECONDS")

    # None keeps user-action steps waiting forever
    user_action_timeout_seconds: Optional[float] = Field(
        default=None, gt=0, alias="PINKFLOW_USER_ACTION_TIMEOUT_SECONDS"
    )
