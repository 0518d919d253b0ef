"""Application DTOs."""

from .event_dto import IngestEventRequest
from .integration_dto import ConnectIntegrationRequest
from .sync_dto import SyncRequest
from .translation_dto import TranslateRequest
from .webhook_dto import RegisterWebhookRequest, UpdateWebhookRequest
from .workflow_dto import (
    CancelWorkflowRequest,
    CreateWorkflowRequest,
    StepSpecDTO,
    UpdateStepRequest,
)

__all__ = [
    "CancelWorkflowRequest",
    "ConnectIntegrationRequest",
    "CreateWorkflowRequest",
    "IngestEventRequest",
    "RegisterWebhookRequest",
    "StepSpecDTO",
    "SyncRequest",
    "TranslateRequest",
    "UpdateStepRequest",
    "UpdateWebhookRequest",
]
