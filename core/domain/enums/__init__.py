from .processing_status import (
    DeliveryStatus,
    EventProcessingStatus,
    SyncStatus,
    WebhookStatus,
)
from .workflow_status import StepStatus, WorkflowStatus

__all__ = [
    "DeliveryStatus",
    "EventProcessingStatus",
    "StepStatus",
    "SyncStatus",
    "WebhookStatus",
    "WorkflowStatus",
]
