"""Workflow state machine - step sequencing, status transitions and persisted progress."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from core.domain.enums import StepStatus, WorkflowStatus
from core.domain.events.event_types import WorkflowEvents, matches_event_type
from core.domain.exceptions import InvalidStateError, NotFoundError
from core.domain.repositories.record_store import WORKFLOWS, RecordStore
from pinkflow_sdk.logging import get_logger
from pinkflow_sdk.utils.datetime import utc_now

from .bus import EventBusProtocol
from .events import ENGINE_SOURCE, Event
from .executor import StepExecutor
from .models import Step, StepResult, Workflow
from .tasks import TaskSupervisor
from .workflow import StepDefinition, WorkflowDefinition


@dataclass
class _Effects:
    """Side effects collected under a workflow lock and applied after release."""

    events: list[Event] = field(default_factory=list)
    launches: list[tuple[Step, Any]] = field(default_factory=list)
    waits: list[str] = field(default_factory=list)


class WorkflowStateMachine:
    """Owns every workflow's step sequence and status.

    All mutations of one workflow (start, advance, fail, skip, cancel) are
    serialized by a per-workflow lock. Steps that call a service run in
    background tasks and report back through ``handle_step_result``.
    Lifecycle events are published after the lock is released.
    """

    def __init__(
        self,
        store: RecordStore,
        executor: StepExecutor,
        event_bus: EventBusProtocol | None = None,
        tasks: TaskSupervisor | None = None,
        user_action_timeout_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize state machine.

        Args:
            store: Record store holding workflows
            executor: StepExecutor used for service steps
            event_bus: Bus that receives lifecycle events
            tasks: Supervisor for step executions
            user_action_timeout_seconds: Fail waiting steps after this long;
                None waits forever
            sleep: Awaitable used for the user-action timeout
        """
        self._store = store
        self._executor = executor
        self._event_bus = event_bus
        self._tasks = tasks or TaskSupervisor()
        self._user_action_timeout = user_action_timeout_seconds
        self._sleep = sleep
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._logger = get_logger("orchestration.state_machine")

    # Queries

    async def get(self, workflow_id: str) -> Workflow:
        record = await self._store.get(WORKFLOWS, workflow_id)
        if record is None:
            raise NotFoundError(
                f"Workflow {workflow_id} not found", details={"workflowId": workflow_id}
            )
        return Workflow.from_dict(record)

    async def list(
        self, status: WorkflowStatus | None = None, owner: str | None = None
    ) -> list[Workflow]:
        workflows = [Workflow.from_dict(record) for record in await self._store.list(WORKFLOWS)]
        if status is not None:
            workflows = [wf for wf in workflows if wf.status == status]
        if owner is not None:
            workflows = [wf for wf in workflows if wf.owner == owner]
        workflows.sort(key=lambda wf: wf.created_at, reverse=True)
        return workflows

    async def find_waiting(self, event_type: str) -> list[tuple[str, str]]:
        """(workflow_id, step_id) of active steps waiting for a matching event."""
        waiting = []
        for workflow in await self.list(status=WorkflowStatus.ACTIVE):
            for step in workflow.steps:
                if (
                    step.status == StepStatus.PENDING
                    and step.awaiting_input
                    and step.await_event
                    and matches_event_type(step.await_event, event_type)
                ):
                    waiting.append((workflow.id, step.id))
        return waiting

    # Commands

    async def create(
        self,
        name: str,
        steps: Sequence[StepDefinition | Mapping[str, Any]],
        owner: str | None = None,
        metadata: dict[str, Any] | None = None,
        description: str = "",
    ) -> Workflow:
        """Create a pending workflow.

        Raises:
            ValidationError: If the name is empty, there are no steps, or a
                step lacks a service or an action
        """
        definition = WorkflowDefinition.build(
            name=name, steps=steps, description=description, owner=owner, metadata=metadata
        )
        workflow = Workflow.from_definition(definition)
        await self._save(workflow)

        self._logger.info(
            "workflow_created",
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            owner=workflow.owner,
            step_count=len(workflow.steps),
        )
        return workflow

    async def start(self, workflow_id: str) -> Workflow:
        """Activate a pending workflow and dispatch its first eligible steps.

        Raises:
            NotFoundError: If the workflow does not exist
            InvalidStateError: If the workflow is not pending
        """

        def mutate(workflow: Workflow, effects: _Effects) -> None:
            if workflow.status != WorkflowStatus.PENDING:
                raise InvalidStateError(
                    f"Workflow {workflow.id} is {workflow.status.value}, expected pending",
                    details={"workflowId": workflow.id, "status": workflow.status.value},
                )
            workflow.status = WorkflowStatus.ACTIVE
            workflow.started_at = utc_now()
            self._emit(effects, WorkflowEvents.STARTED, workflow)
            self._dispatch_next(workflow, effects)

        workflow = await self._transition(workflow_id, mutate)
        self._logger.info("workflow_started", workflow_id=workflow_id, workflow_name=workflow.name)
        return workflow

    async def advance(
        self,
        workflow_id: str,
        step_id: str,
        result: Any = None,
        attempts: int | None = None,
    ) -> Workflow:
        """Complete a dispatched step and move the workflow forward.

        A user-action step advanced without a result stays pending and the
        workflow is returned unchanged.

        Raises:
            NotFoundError: If the workflow or step does not exist
            InvalidStateError: If the step is not dispatched or the workflow
                is already finished
        """

        def mutate(workflow: Workflow, effects: _Effects) -> bool:
            step = workflow.step(step_id)
            self._require_dispatched(workflow, step)
            if step.is_user_action_required and result is None:
                # Parked until the user supplies input
                return False
            step.status = StepStatus.COMPLETED
            step.result = result
            step.error = None
            step.awaiting_input = False
            step.completed_at = utc_now()
            if attempts is not None:
                step.attempts = attempts
            self._emit(effects, WorkflowEvents.STEP_COMPLETED, workflow, step, result=result)
            self._dispatch_next(workflow, effects)
            return True

        return await self._transition(workflow_id, mutate)

    async def fail(
        self,
        workflow_id: str,
        step_id: str,
        error: str,
        attempts: int | None = None,
    ) -> Workflow:
        """Fail a dispatched step.

        The workflow fails with it, unless the step defines a compensation:
        then the step is recorded skipped, the compensation step is inserted
        right after it and the workflow carries on.

        Raises:
            NotFoundError: If the workflow or step does not exist
            InvalidStateError: If the step is not dispatched or the workflow
                is already finished
        """

        def mutate(workflow: Workflow, effects: _Effects) -> None:
            step = workflow.step(step_id)
            self._require_dispatched(workflow, step)
            self._mark_failed(step, error)
            if attempts is not None:
                step.attempts = attempts

            if step.compensation:
                compensation = Step.from_definition(
                    StepDefinition.coerce(step.compensation), step_id=f"{step.id}-compensation"
                )
                step.status = StepStatus.SKIPPED
                step.compensated_by = compensation.id
                workflow.steps.insert(workflow.index_of(step.id) + 1, compensation)
                self._emit(
                    effects,
                    WorkflowEvents.STEP_FAILED,
                    workflow,
                    step,
                    error=error,
                    compensatedBy=compensation.id,
                )
                self._logger.warning(
                    "step_compensated",
                    workflow_id=workflow.id,
                    step_id=step.id,
                    compensation_step_id=compensation.id,
                    error=error,
                )
                self._dispatch_next(workflow, effects)
                return

            self._emit(effects, WorkflowEvents.STEP_FAILED, workflow, step, error=error)
            self._fail_workflow(
                workflow,
                error=f"Step {step.name} failed: {error}",
                step_error=f"Abandoned after step {step.name} failed",
                effects=effects,
            )

        return await self._transition(workflow_id, mutate)

    async def skip(self, workflow_id: str, step_id: str, reason: str | None = None) -> Workflow:
        """Skip a pending step of an active workflow.

        Raises:
            NotFoundError: If the workflow or step does not exist
            InvalidStateError: If the workflow is not active or the step is
                not pending
        """

        def mutate(workflow: Workflow, effects: _Effects) -> None:
            step = workflow.step(step_id)
            if workflow.status != WorkflowStatus.ACTIVE:
                raise InvalidStateError(
                    f"Workflow {workflow.id} is {workflow.status.value}, expected active",
                    details={"workflowId": workflow.id, "status": workflow.status.value},
                )
            if step.status != StepStatus.PENDING:
                raise InvalidStateError(
                    f"Step {step.id} is {step.status.value}, expected pending",
                    details={"workflowId": workflow.id, "stepId": step.id},
                )
            step.status = StepStatus.SKIPPED
            step.error = reason
            step.awaiting_input = False
            step.completed_at = utc_now()
            self._emit(effects, WorkflowEvents.STEP_SKIPPED, workflow, step, reason=reason)
            self._dispatch_next(workflow, effects)

        return await self._transition(workflow_id, mutate)

    async def cancel(self, workflow_id: str, reason: str = "Cancelled") -> Workflow:
        """Fail a workflow from outside.

        Every dispatched step, or the first unfinished step when none is
        dispatched, is failed with the reason.

        Raises:
            NotFoundError: If the workflow does not exist
            InvalidStateError: If the workflow already finished
        """

        def mutate(workflow: Workflow, effects: _Effects) -> None:
            if workflow.status.is_terminal:
                raise InvalidStateError(
                    f"Workflow {workflow.id} is already {workflow.status.value}",
                    details={"workflowId": workflow.id, "status": workflow.status.value},
                )
            if not workflow.dispatched_steps:
                first = next((s for s in workflow.steps if not s.status.is_finished), None)
                if first is not None:
                    self._mark_failed(first, reason)
                    self._emit(effects, WorkflowEvents.STEP_FAILED, workflow, first, error=reason)
            self._fail_workflow(workflow, error=reason, step_error=reason, effects=effects)

        return await self._transition(workflow_id, mutate)

    async def handle_step_result(self, workflow_id: str, step_id: str, result: StepResult) -> None:
        """Feed an executor outcome back into the workflow.

        Results that arrive after the step or the workflow moved on are
        logged and dropped.
        """
        try:
            if result.success:
                await self.advance(workflow_id, step_id, result.output, attempts=result.attempts)
            else:
                await self.fail(
                    workflow_id,
                    step_id,
                    result.error or "Step failed",
                    attempts=result.attempts,
                )
        except (InvalidStateError, NotFoundError) as exc:
            self._logger.info(
                "late_step_result_ignored",
                workflow_id=workflow_id,
                step_id=step_id,
                success=result.success,
                reason=exc.message,
            )

    # Internals

    def _lock_for(self, workflow_id: str) -> asyncio.Lock:
        lock = self._locks.get(workflow_id)
        if lock is None:
            lock = self._locks[workflow_id] = asyncio.Lock()
        self._lock_users[workflow_id] = self._lock_users.get(workflow_id, 0) + 1
        return lock

    def _release_lock(self, workflow_id: str) -> None:
        users = self._lock_users.get(workflow_id, 0) - 1
        if users > 0:
            self._lock_users[workflow_id] = users
            return
        self._lock_users.pop(workflow_id, None)
        self._locks.pop(workflow_id, None)

    async def _transition(
        self, workflow_id: str, mutate: Callable[[Workflow, _Effects], bool | None]
    ) -> Workflow:
        effects = _Effects()
        try:
            async with self._lock_for(workflow_id):
                workflow = await self.get(workflow_id)
                if mutate(workflow, effects) is not False:
                    workflow.updated_at = utc_now()
                    await self._save(workflow)
        finally:
            # Idle locks are dropped; the next transition creates a fresh one
            self._release_lock(workflow_id)

        self._launch(workflow.id, effects)
        await self._publish(effects.events)
        return workflow

    async def _save(self, workflow: Workflow) -> None:
        await self._store.put(WORKFLOWS, workflow.id, workflow.to_dict())

    def _require_dispatched(self, workflow: Workflow, step: Step) -> None:
        if workflow.status.is_terminal:
            raise InvalidStateError(
                f"Workflow {workflow.id} is already {workflow.status.value}",
                details={"workflowId": workflow.id, "stepId": step.id},
            )
        if not step.is_dispatched:
            raise InvalidStateError(
                f"Step {step.id} is {step.status.value} and not awaiting a result",
                details={"workflowId": workflow.id, "stepId": step.id, "status": step.status.value},
            )

    def _dispatch_next(self, workflow: Workflow, effects: _Effects) -> None:
        if workflow.status != WorkflowStatus.ACTIVE or workflow.dispatched_steps:
            return

        eligible = [step for step in workflow.eligible_steps() if step.status == StepStatus.PENDING]
        if not eligible:
            if workflow.all_finished:
                workflow.status = WorkflowStatus.COMPLETED
                workflow.completed_at = utc_now()
                workflow.error = None
                self._emit(effects, WorkflowEvents.COMPLETED, workflow, result=workflow.last_result())
                self._logger.info(
                    "workflow_completed", workflow_id=workflow.id, workflow_name=workflow.name
                )
            return

        for step in eligible:
            step.started_at = utc_now()
            if step.waits_for_input:
                step.awaiting_input = True
                self._emit(
                    effects,
                    WorkflowEvents.STEP_WAITING,
                    workflow,
                    step,
                    awaitEvent=step.await_event,
                    userActionDescription=step.user_action_description,
                )
                if self._user_action_timeout is not None:
                    effects.waits.append(step.id)
            else:
                step.status = StepStatus.IN_PROGRESS
                self._emit(effects, WorkflowEvents.STEP_STARTED, workflow, step)
                effects.launches.append((copy.deepcopy(step), workflow.previous_result(step)))

            self._logger.info(
                "step_dispatched",
                workflow_id=workflow.id,
                step_id=step.id,
                service=step.service,
                action=step.action,
                awaiting_input=step.awaiting_input,
            )

    def _mark_failed(self, step: Step, error: str) -> None:
        step.status = StepStatus.FAILED
        step.error = error
        step.awaiting_input = False
        step.completed_at = utc_now()

    def _fail_workflow(
        self, workflow: Workflow, error: str, step_error: str, effects: _Effects
    ) -> None:
        for step in workflow.dispatched_steps:
            self._mark_failed(step, step_error)
            self._emit(effects, WorkflowEvents.STEP_FAILED, workflow, step, error=step_error)

        workflow.status = WorkflowStatus.FAILED
        workflow.error = error
        workflow.completed_at = utc_now()
        self._emit(effects, WorkflowEvents.FAILED, workflow, error=error)
        self._logger.warning(
            "workflow_failed", workflow_id=workflow.id, workflow_name=workflow.name, error=error
        )

    def _emit(
        self,
        effects: _Effects,
        event_type: str,
        workflow: Workflow,
        step: Step | None = None,
        **extra: Any,
    ) -> None:
        data: dict[str, Any] = {
            "workflowId": workflow.id,
            "workflowName": workflow.name,
            "status": workflow.status.value,
            "owner": workflow.owner,
            "metadata": copy.deepcopy(workflow.metadata),
        }
        if step is not None:
            data.update(
                stepId=step.id,
                stepName=step.name,
                service=step.service,
                action=step.action,
                stepStatus=step.status.value,
            )
        data.update(copy.deepcopy(extra))
        effects.events.append(
            Event.create(event_type, ENGINE_SOURCE, data, correlation_id=workflow.id)
        )

    def _launch(self, workflow_id: str, effects: _Effects) -> None:
        for step, input_ in effects.launches:
            self._tasks.spawn(
                self._run_step(workflow_id, step, input_), name=f"step:{workflow_id}:{step.id}"
            )
        for step_id in effects.waits:
            self._tasks.spawn(
                self._expire_wait(workflow_id, step_id), name=f"wait:{workflow_id}:{step_id}"
            )

    async def _run_step(self, workflow_id: str, step: Step, input_: Any) -> None:
        result = await self._executor.execute(step, input_)
        await self.handle_step_result(workflow_id, step.id, result)

    async def _expire_wait(self, workflow_id: str, step_id: str) -> None:
        await self._sleep(self._user_action_timeout)
        try:
            workflow = await self.get(workflow_id)
            step = workflow.step(step_id)
            if not (step.status == StepStatus.PENDING and step.awaiting_input):
                return
            await self.fail(
                workflow_id,
                step_id,
                f"No input received within {self._user_action_timeout}s",
            )
        except (InvalidStateError, NotFoundError) as exc:
            self._logger.debug(
                "user_action_timeout_ignored",
                workflow_id=workflow_id,
                step_id=step_id,
                reason=exc.message,
            )

    async def _publish(self, events: list[Event]) -> None:
        if self._event_bus is None:
            return
        for event in events:
            await self._event_bus.publish(event)
