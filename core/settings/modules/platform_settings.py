from __future__ import annotations

from pydantic import Field

from core.settings.base import PinkFlowBaseSettings


class PlatformSettings(PinkFlowBaseSettings):
    """
    Platform-wide flags.
    """

    name: str = Field(default="PinkFlow", alias="PINKFLOW_NAME")
    version: str = Field(default="1.0.0", alias="PINKFLOW_VERSION")
    environment: str = Field(default="development", alias="PINKFLOW_ENV")
    automation_enabled: bool = Field(default=True, alias="PINKFLOW_AUTOMATION_ENABLED")
    log_level: str = Field(default="INFO", alias="PINKFLOW_LOG_LEVEL")
    json_logs: bool = Field(default=False, alias="PINKFLOW_JSON_LOGS")
