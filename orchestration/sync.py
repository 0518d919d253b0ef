"""Sync coordinator - single-flight cross-service synchronization over workflows."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from core.domain.enums import SyncStatus, WorkflowStatus
from core.domain.events.event_types import WorkflowEvents
from core.domain.exceptions import NotFoundError, OrchestrationError, ValidationError
from core.domain.repositories.record_store import SYNC_OPERATIONS, RecordStore
from pinkflow_sdk.logging import get_logger
from pinkflow_sdk.utils.datetime import utc_now

from .bus import InMemoryEventBus
from .events import Event
from .models import SyncOperation, Workflow, new_id
from .state_machine import WorkflowStateMachine

SYNC_OPERATION_KEY = "syncOperationId"

_STATUS_BY_WORKFLOW = {
    WorkflowStatus.PENDING: SyncStatus.PENDING,
    WorkflowStatus.ACTIVE: SyncStatus.IN_PROGRESS,
    WorkflowStatus.COMPLETED: SyncStatus.COMPLETED,
    WorkflowStatus.FAILED: SyncStatus.FAILED,
}


@dataclass(frozen=True)
class SyncRoute:
    """A sync type bound to the services it reads from and writes to."""

    sync_type: str
    source_service: str
    target_service: str
    fetch_action: str = "fetch"
    reconcile_action: str = "reconcile"


def routes_from_mapping(routes: Mapping[str, Sequence[str]]) -> dict[str, SyncRoute]:
    """Build routes from ``{"business-vr": ["business", "v4deaf"], ...}``."""
    return {
        sync_type: SyncRoute(sync_type, source_service=services[0], target_service=services[1])
        for sync_type, services in routes.items()
    }


def parse_scheduled_job(job: str) -> tuple[str, str, str]:
    """Split ``"type:sourceId:targetId"``."""
    sync_type, source_id, target_id = job.split(":")
    return sync_type, source_id, target_id


class SyncCoordinator:
    """Runs syncs as two-step fetch/reconcile workflows.

    At most one operation per (type, source, target) runs at a time; callers
    asking for a running key get the running operation back.
    """

    def __init__(
        self,
        store: RecordStore,
        state_machine: WorkflowStateMachine,
        routes: Mapping[str, SyncRoute],
    ) -> None:
        self._store = store
        self._state_machine = state_machine
        self._routes = dict(routes)
        self._lock = asyncio.Lock()
        self._inflight: dict[tuple[str, str, str], str] = {}
        self._logger = get_logger("orchestration.sync")

    @property
    def sync_types(self) -> list[str]:
        return sorted(self._routes)

    def attach(self, bus: InMemoryEventBus) -> None:
        """Refresh operations when their workflow finishes."""
        bus.subscribe(WorkflowEvents.COMPLETED, self._on_workflow_finished)
        bus.subscribe(WorkflowEvents.FAILED, self._on_workflow_finished)

    async def _on_workflow_finished(self, event: Event) -> None:
        metadata = event.data.get("metadata") or {}
        operation_id = metadata.get(SYNC_OPERATION_KEY)
        if operation_id:
            await self.refresh(operation_id)

    async def sync(
        self, sync_type: str, source_id: str, target_id: str, owner: str | None = None
    ) -> SyncOperation:
        """Start a sync, or return the one already running for the same key.

        Raises:
            ValidationError: If the type has no route or an id is empty
        """
        route = self._routes.get(sync_type)
        if route is None:
            raise ValidationError(
                f"Unknown sync type: {sync_type}",
                details={"syncType": sync_type, "supported": self.sync_types},
            )
        if not source_id or not target_id:
            raise ValidationError("sourceId and targetId are required")

        key = (sync_type, source_id, target_id)
        async with self._lock:
            running_id = self._inflight.get(key)
            if running_id is not None:
                running = await self._load(running_id)
                if running.status.is_running:
                    self._logger.info("sync_joined", sync_id=running.id, sync_type=sync_type)
                    return running
                del self._inflight[key]

            operation = SyncOperation(
                id=new_id("sync"),
                type=sync_type,
                source_id=source_id,
                target_id=target_id,
                owner=owner,
            )
            workflow = await self._state_machine.create(
                name=f"sync:{sync_type}",
                description=f"Sync {source_id} -> {target_id}",
                owner=owner,
                metadata={SYNC_OPERATION_KEY: operation.id, "syncType": sync_type},
                steps=[
                    {
                        "name": "fetch",
                        "service": route.source_service,
                        "action": route.fetch_action,
                        "parameters": {"sourceId": source_id, "syncType": sync_type},
                    },
                    {
                        "name": "reconcile",
                        "service": route.target_service,
                        "action": route.reconcile_action,
                        "parameters": {
                            "sourceId": source_id,
                            "targetId": target_id,
                            "syncType": sync_type,
                        },
                    },
                ],
            )
            operation.workflow_id = workflow.id
            await self._save(operation)
            self._inflight[key] = operation.id

        self._logger.info(
            "sync_started",
            sync_id=operation.id,
            sync_type=sync_type,
            source_id=source_id,
            target_id=target_id,
            workflow_id=workflow.id,
        )
        await self._state_machine.start(workflow.id)
        return await self.refresh(operation.id)

    async def get(self, operation_id: str) -> SyncOperation:
        """Current state of an operation, refreshed from its workflow.

        Raises:
            NotFoundError: If the operation does not exist
        """
        return await self.refresh(operation_id)

    async def list(
        self, status: SyncStatus | None = None, sync_type: str | None = None
    ) -> list[SyncOperation]:
        operations = [
            SyncOperation.from_dict(record) for record in await self._store.list(SYNC_OPERATIONS)
        ]
        if status is not None:
            operations = [op for op in operations if op.status == status]
        if sync_type is not None:
            operations = [op for op in operations if op.type == sync_type]
        operations.sort(key=lambda op: op.created_at, reverse=True)
        return operations

    async def refresh(self, operation_id: str) -> SyncOperation:
        """Derive an operation's status from its workflow and persist it."""
        async with self._lock:
            operation = await self._load(operation_id)
            if operation.status.is_running and operation.workflow_id:
                workflow = await self._state_machine.get(operation.workflow_id)
                if self._apply(operation, workflow):
                    await self._save(operation)
            if not operation.status.is_running and self._inflight.get(operation.key) == operation.id:
                del self._inflight[operation.key]
            return operation

    async def run_schedule(self, jobs: Iterable[str], interval_seconds: float) -> None:
        """Run scheduled jobs every interval until cancelled."""
        parsed = [parse_scheduled_job(job) for job in jobs]
        self._logger.info("sync_schedule_started", jobs=len(parsed), interval_seconds=interval_seconds)
        while True:
            for sync_type, source_id, target_id in parsed:
                try:
                    await self.sync(sync_type, source_id, target_id, owner="scheduler")
                except OrchestrationError as exc:
                    self._logger.error(
                        "scheduled_sync_failed",
                        sync_type=sync_type,
                        source_id=source_id,
                        target_id=target_id,
                        error=exc.message,
                    )
            await asyncio.sleep(interval_seconds)

    def _apply(self, operation: SyncOperation, workflow: Workflow) -> bool:
        status = _STATUS_BY_WORKFLOW[workflow.status]
        if status == operation.status:
            return False

        operation.status = status
        operation.updated_at = utc_now()
        if status == SyncStatus.COMPLETED:
            operation.synced_data = workflow.last_result()
            operation.synced_at = workflow.completed_at or utc_now()
            operation.error = None
            self._logger.info("sync_completed", sync_id=operation.id, sync_type=operation.type)
        elif status == SyncStatus.FAILED:
            operation.error = workflow.error
            self._logger.warning(
                "sync_failed", sync_id=operation.id, sync_type=operation.type, error=workflow.error
            )
        return True

    async def _load(self, operation_id: str) -> SyncOperation:
        record = await self._store.get(SYNC_OPERATIONS, operation_id)
        if record is None:
            raise NotFoundError(
                f"Sync operation {operation_id} not found", details={"syncId": operation_id}
            )
        return SyncOperation.from_dict(record)

    async def _save(self, operation: SyncOperation) -> None:
        await self._store.put(SYNC_OPERATIONS, operation.id, operation.to_dict())
