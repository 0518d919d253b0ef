"""Orchestration models - Step, Workflow, StepResult, SyncOperation, webhook records."""

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.domain.enums import (
    DeliveryStatus,
    StepStatus,
    SyncStatus,
    WebhookStatus,
    WorkflowStatus,
)
from core.domain.exceptions import NotFoundError
from pinkflow_sdk.utils.datetime import from_iso, to_iso, utc_now

from .workflow import StepDefinition, WorkflowDefinition


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


@dataclass
class Step:
    """A step of a running workflow."""

    id: str
    name: str
    service: str
    action: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    status: StepStatus = StepStatus.PENDING
    result: Any = None
    error: str | None = None
    is_user_action_required: bool = False
    user_action_description: str | None = None
    await_event: str | None = None
    awaiting_input: bool = False
    parallel: bool = False
    compensation: dict[str, Any] | None = None
    compensated_by: str | None = None
    attempts: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_definition(cls, definition: StepDefinition, step_id: str) -> "Step":
        return cls(
            id=step_id,
            name=definition.name,
            service=definition.service,
            action=definition.action,
            description=definition.description,
            parameters=copy.deepcopy(definition.parameters),
            is_user_action_required=definition.is_user_action_required,
            user_action_description=definition.user_action_description,
            await_event=definition.await_event,
            parallel=definition.parallel,
            compensation=definition.compensation.to_dict() if definition.compensation else None,
        )

    @property
    def waits_for_input(self) -> bool:
        """True when dispatch parks the step until a user or an event advances it."""
        return self.is_user_action_required or self.await_event is not None

    @property
    def is_dispatched(self) -> bool:
        return self.status == StepStatus.IN_PROGRESS or (
            self.status == StepStatus.PENDING and self.awaiting_input
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "service": self.service,
            "action": self.action,
            "parameters": self.parameters,
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
            "isUserActionRequired": self.is_user_action_required,
            "userActionDescription": self.user_action_description,
            "awaitEvent": self.await_event,
            "awaitingInput": self.awaiting_input,
            "parallel": self.parallel,
            "compensation": self.compensation,
            "compensatedBy": self.compensated_by,
            "attempts": self.attempts,
            "startedAt": to_iso(self.started_at),
            "completedAt": to_iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Step":
        return cls(
            id=data["id"],
            name=data["name"],
            service=data["service"],
            action=data["action"],
            description=data.get("description") or "",
            parameters=data.get("parameters") or {},
            status=StepStatus(data.get("status", "pending")),
            result=data.get("result"),
            error=data.get("error"),
            is_user_action_required=bool(data.get("isUserActionRequired", False)),
            user_action_description=data.get("userActionDescription"),
            await_event=data.get("awaitEvent"),
            awaiting_input=bool(data.get("awaitingInput", False)),
            parallel=bool(data.get("parallel", False)),
            compensation=data.get("compensation"),
            compensated_by=data.get("compensatedBy"),
            attempts=int(data.get("attempts", 0)),
            started_at=from_iso(data.get("startedAt")),
            completed_at=from_iso(data.get("completedAt")),
        )


@dataclass
class Workflow:
    """A workflow instance and its step sequence."""

    id: str
    name: str
    steps: list[Step]
    description: str = ""
    status: WorkflowStatus = WorkflowStatus.PENDING
    owner: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None

    @classmethod
    def from_definition(cls, definition: WorkflowDefinition) -> "Workflow":
        steps = [
            Step.from_definition(step, step_id=f"step-{index}")
            for index, step in enumerate(definition.steps, start=1)
        ]
        return cls(
            id=new_id("wf"),
            name=definition.name,
            description=definition.description,
            steps=steps,
            owner=definition.owner,
            metadata=copy.deepcopy(definition.metadata),
        )

    def step(self, step_id: str) -> Step:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise NotFoundError(
            f"Step {step_id} not found in workflow {self.id}",
            details={"workflowId": self.id, "stepId": step_id},
        )

    def index_of(self, step_id: str) -> int:
        return self.steps.index(self.step(step_id))

    @property
    def dispatched_steps(self) -> list[Step]:
        return [step for step in self.steps if step.is_dispatched]

    @property
    def all_finished(self) -> bool:
        return all(step.status.is_finished for step in self.steps)

    def eligible_steps(self) -> list[Step]:
        """Steps to dispatch next.

        The first unfinished step, or, when it is parallel, the contiguous
        run of unfinished parallel steps starting there.
        """
        for index, step in enumerate(self.steps):
            if step.status.is_finished:
                continue
            if not step.parallel:
                return [step]
            group = []
            for candidate in self.steps[index:]:
                if not candidate.parallel:
                    break
                if not candidate.status.is_finished:
                    group.append(candidate)
            return group
        return []

    def previous_result(self, step: Step) -> Any:
        """Result of the closest completed step before ``step``, if any."""
        index = self.index_of(step.id)
        for previous in reversed(self.steps[:index]):
            if previous.status == StepStatus.COMPLETED:
                return previous.result
        return None

    def last_result(self) -> Any:
        for step in reversed(self.steps):
            if step.status == StepStatus.COMPLETED:
                return step.result
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "steps": [step.to_dict() for step in self.steps],
            "status": self.status.value,
            "owner": self.owner,
            "metadata": self.metadata,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "startedAt": to_iso(self.started_at),
            "completedAt": to_iso(self.completed_at),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Workflow":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description") or "",
            steps=[Step.from_dict(step) for step in data.get("steps", [])],
            status=WorkflowStatus(data.get("status", "pending")),
            owner=data.get("owner"),
            metadata=data.get("metadata") or {},
            created_at=from_iso(data.get("createdAt")) or utc_now(),
            updated_at=from_iso(data.get("updatedAt")) or utc_now(),
            started_at=from_iso(data.get("startedAt")),
            completed_at=from_iso(data.get("completedAt")),
            error=data.get("error"),
        )


@dataclass
class StepResult:
    """Result of a workflow step execution."""

    name: str
    success: bool
    attempts: int
    duration_ms: int
    error: str | None = None
    error_kind: str | None = None
    output: object = None


@dataclass
class SyncOperation:
    """A cross-service synchronization and the workflow that carries it out."""

    id: str
    type: str
    source_id: str
    target_id: str
    status: SyncStatus = SyncStatus.PENDING
    synced_data: Any = None
    workflow_id: str | None = None
    owner: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    synced_at: datetime | None = None
    error: str | None = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.type, self.source_id, self.target_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "status": self.status.value,
            "syncedData": self.synced_data,
            "workflowId": self.workflow_id,
            "owner": self.owner,
            "createdAt": to_iso(self.created_at),
            "updatedAt": to_iso(self.updated_at),
            "syncedAt": to_iso(self.synced_at),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncOperation":
        return cls(
            id=data["id"],
            type=data["type"],
            source_id=data["sourceId"],
            target_id=data["targetId"],
            status=SyncStatus(data.get("status", "pending")),
            synced_data=data.get("syncedData"),
            workflow_id=data.get("workflowId"),
            owner=data.get("owner"),
            created_at=from_iso(data.get("createdAt")) or utc_now(),
            updated_at=from_iso(data.get("updatedAt")) or utc_now(),
            synced_at=from_iso(data.get("syncedAt")),
            error=data.get("error"),
        )


@dataclass
class WebhookRegistration:
    """A registered webhook endpoint.

    ``to_dict`` never includes the secret; ``to_record`` is the stored form.
    """

    id: str
    url: str
    events: list[str]
    secret: str | None = None
    status: WebhookStatus = WebhookStatus.ACTIVE
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "events": list(self.events),
            "hasSecret": bool(self.secret),
            "status": self.status.value,
            "createdAt": to_iso(self.created_at),
        }

    def to_record(self) -> dict[str, Any]:
        record = self.to_dict()
        del record["hasSecret"]
        record["secret"] = self.secret
        return record

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "WebhookRegistration":
        return cls(
            id=data["id"],
            url=data["url"],
            events=list(data.get("events") or []),
            secret=data.get("secret"),
            status=WebhookStatus(data.get("status", "active")),
            created_at=from_iso(data.get("createdAt")) or utc_now(),
        )


@dataclass
class DeliveryRecord:
    """Outcome of delivering one event to one webhook."""

    id: str
    webhook_id: str
    event_id: str
    event_type: str
    url: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    attempts: int = 0
    last_status_code: int | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "webhookId": self.webhook_id,
            "eventId": self.event_id,
            "eventType": self.event_type,
            "url": self.url,
            "status": self.status.value,
            "attempts": self.attempts,
            "lastStatusCode": self.last_status_code,
            "error": self.error,
            "createdAt": to_iso(self.created_at),
            "completedAt": to_iso(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeliveryRecord":
        return cls(
            id=data["id"],
            webhook_id=data["webhookId"],
            event_id=data["eventId"],
            event_type=data["eventType"],
            url=data["url"],
            status=DeliveryStatus(data.get("status", "pending")),
            attempts=int(data.get("attempts", 0)),
            last_status_code=data.get("lastStatusCode"),
            error=data.get("error"),
            created_at=from_iso(data.get("createdAt")) or utc_now(),
            completed_at=from_iso(data.get("completedAt")),
        )
