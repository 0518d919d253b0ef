"""Application layer - request DTOs and port interfaces."""

from .dtos import (
    CancelWorkflowRequest,
    ConnectIntegrationRequest,
    CreateWorkflowRequest,
    IngestEventRequest,
    RegisterWebhookRequest,
    StepSpecDTO,
    SyncRequest,
    UpdateStepRequest,
    UpdateWebhookRequest,
)
from .interfaces import IIdempotencyIndex, IServiceAdapter, IWebhookSender

__all__ = [
    # DTOs
    "CancelWorkflowRequest",
    "ConnectIntegrationRequest",
    "CreateWorkflowRequest",
    "IngestEventRequest",
    "RegisterWebhookRequest",
    "StepSpecDTO",
    "SyncRequest",
    "UpdateStepRequest",
    "UpdateWebhookRequest",
    # Interfaces
    "IIdempotencyIndex",
    "IServiceAdapter",
    "IWebhookSender",
]
