"""Domain layer - statuses, event taxonomy, errors and storage interfaces."""

from .enums import (
    DeliveryStatus,
    EventProcessingStatus,
    StepStatus,
    SyncStatus,
    WebhookStatus,
    WorkflowStatus,
)
from .exceptions import (
    InvalidStateError,
    NotFoundError,
    OrchestrationError,
    ServiceError,
    TerminalServiceError,
    TransientServiceError,
    ValidationError,
)

__all__ = [
    "DeliveryStatus",
    "EventProcessingStatus",
    "StepStatus",
    "SyncStatus",
    "WebhookStatus",
    "WorkflowStatus",
    "InvalidStateError",
    "NotFoundError",
    "OrchestrationError",
    "ServiceError",
    "TerminalServiceError",
    "TransientServiceError",
    "ValidationError",
]
