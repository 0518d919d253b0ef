# Settings modules
from .app_settings import AppSettings, get_app_settings, load_app_settings
from .event_settings import EventSettings
from .executor_settings import ExecutorSettings
from .platform_settings import PlatformSettings
from .service_settings import ServiceSettings
from .sync_settings import DEFAULT_SYNC_ROUTES, SyncSettings
from .webhook_settings import WebhookSettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "load_app_settings",
    "DEFAULT_SYNC_ROUTES",
    "EventSettings",
    "ExecutorSettings",
    "PlatformSettings",
    "ServiceSettings",
    "SyncSettings",
    "WebhookSettings",
]
