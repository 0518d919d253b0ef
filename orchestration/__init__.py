"""Orchestration layer - workflow state machine, step execution, events, sync and webhooks."""

from .bus import EventBusProtocol, InMemoryEventBus
from .engine import Engine, build_default_registry, create_engine
from .events import Event, IngestOutcome, IngestResult
from .executor import StepExecutor
from .ingestion import EventIngestionQueue
from .models import (
    DeliveryRecord,
    Step,
    StepResult,
    SyncOperation,
    WebhookRegistration,
    Workflow,
)
from .registry import IntegrationInfo, ServiceRegistry
from .state_machine import WorkflowStateMachine
from .sync import SyncCoordinator, SyncRoute
from .tasks import TaskSupervisor
from .webhooks import WebhookDispatcher, sign_payload, verify_signature
from .workflow import RetryPolicy, StepDefinition, WorkflowDefinition

__all__ = [
    "DeliveryRecord",
    "Engine",
    "Event",
    "EventBusProtocol",
    "EventIngestionQueue",
    "InMemoryEventBus",
    "IngestOutcome",
    "IngestResult",
    "IntegrationInfo",
    "RetryPolicy",
    "ServiceRegistry",
    "Step",
    "StepDefinition",
    "StepExecutor",
    "StepResult",
    "SyncCoordinator",
    "SyncOperation",
    "SyncRoute",
    "TaskSupervisor",
    "WebhookDispatcher",
    "WebhookRegistration",
    "Workflow",
    "WorkflowDefinition",
    "WorkflowStateMachine",
    "build_default_registry",
    "create_engine",
    "sign_payload",
    "verify_signature",
]
