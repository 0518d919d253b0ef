"""Status values for events, sync operations and webhooks."""
from enum import Enum


class EventProcessingStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class SyncStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_running(self) -> bool:
        return self in (SyncStatus.PENDING, SyncStatus.IN_PROGRESS)


class WebhookStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
