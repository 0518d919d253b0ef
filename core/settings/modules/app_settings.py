from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from core.infrastructure.database.config import DatabaseSettings
from core.settings.modules.event_settings import EventSettings
from core.settings.modules.executor_settings import ExecutorSettings
from core.settings.modules.platform_settings import PlatformSettings
from core.settings.modules.service_settings import ServiceSettings
from core.settings.modules.sync_settings import SyncSettings
from core.settings.modules.webhook_settings import WebhookSettings


class AppSettings(BaseModel):
    """
    Application settings aggregator.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    platform: PlatformSettings
    executor: ExecutorSettings
    events: EventSettings
    sync: SyncSettings
    webhooks: WebhookSettings
    services: ServiceSettings
    database: DatabaseSettings


def load_app_settings() -> AppSettings:
    """Build settings from the current environment."""
    return AppSettings(
        platform=PlatformSettings(),
        executor=ExecutorSettings(),
        events=EventSettings(),
        sync=SyncSettings(),
        webhooks=WebhookSettings(),
        services=ServiceSettings(),
        database=DatabaseSettings(),
    )


@lru_cache()
def get_app_settings() -> AppSettings:
    return load_app_settings()
