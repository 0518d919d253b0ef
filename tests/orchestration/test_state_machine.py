"""Tests for WorkflowStateMachine - transitions, dispatch and concurrency."""

import asyncio
import random

import pytest

from core.domain.enums import StepStatus, WorkflowStatus
from core.domain.exceptions import (
    InvalidStateError,
    NotFoundError,
    TerminalServiceError,
    ValidationError,
)
from orchestration.events import Event
from tests.fakes import HangingAdapter, ScriptedAdapter, build_engine, make_registry


def user_step(name: str, **extra) -> dict:
    return {"name": name, "service": "internal", "action": "noop", "isUserActionRequired": True, **extra}


def assert_status_invariant(workflow) -> None:
    all_finished = all(step.status.is_finished for step in workflow.steps)
    any_failed = any(step.status == StepStatus.FAILED for step in workflow.steps)
    assert (workflow.status == WorkflowStatus.COMPLETED) == all_finished
    assert (workflow.status == WorkflowStatus.FAILED) == any_failed


@pytest.mark.asyncio
async def test_create_assigns_step_ids_and_stays_pending():
    engine = build_engine()

    workflow = await engine.workflows.create(
        "onboarding",
        [{"service": "internal", "action": "echo"}, {"service": "business", "action": "fetch"}],
        owner="user-1",
        metadata={"tenant": "t-1"},
    )

    assert workflow.status == WorkflowStatus.PENDING
    assert [step.id for step in workflow.steps] == ["step-1", "step-2"]
    assert workflow.steps[0].name == "internal.echo"
    assert workflow.owner == "user-1"

    stored = await engine.workflows.get(workflow.id)
    assert stored.to_dict() == workflow.to_dict()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "name, steps",
    [
        ("", [{"service": "internal", "action": "echo"}]),
        ("empty", []),
        ("no service", [{"action": "echo"}]),
        ("no action", [{"service": "internal"}]),
        ("bad pattern", [{"service": "internal", "action": "echo", "awaitEvent": "a.*.b"}]),
    ],
)
async def test_create_rejects_invalid_definitions(name, steps):
    engine = build_engine()

    with pytest.raises(ValidationError):
        await engine.workflows.create(name, steps)


@pytest.mark.asyncio
async def test_start_requires_pending_workflow():
    engine = build_engine()
    workflow = await engine.workflows.create("w", [user_step("approve")])

    await engine.workflows.start(workflow.id)
    with pytest.raises(InvalidStateError):
        await engine.workflows.start(workflow.id)

    with pytest.raises(NotFoundError):
        await engine.workflows.start("wf-missing")


@pytest.mark.asyncio
async def test_service_steps_run_in_background_and_pass_previous_result():
    fetcher = ScriptedAdapter(default={"record": {"name": "Acme"}})
    writer = ScriptedAdapter(default={"written": True})
    engine = build_engine(make_registry(fetcher=fetcher, writer=writer))

    workflow = await engine.workflows.create(
        "copy",
        [
            {"service": "fetcher", "action": "read", "parameters": {"id": "1"}},
            {"service": "writer", "action": "write"},
        ],
    )
    started = await engine.workflows.start(workflow.id)
    assert started.status == WorkflowStatus.ACTIVE
    assert started.steps[0].status == StepStatus.IN_PROGRESS

    assert await engine.tasks.drain(timeout=2)

    finished = await engine.workflows.get(workflow.id)
    assert finished.status == WorkflowStatus.COMPLETED
    assert finished.completed_at is not None
    assert [step.attempts for step in finished.steps] == [1, 1]
    assert fetcher.calls == [("read", {"id": "1"})]
    assert writer.calls == [("write", {"input": {"record": {"name": "Acme"}}})]


@pytest.mark.asyncio
async def test_formation_scenario_with_manual_completion_ignores_late_result():
    northwest = HangingAdapter(result={"filingId": "late"})
    legalshield = ScriptedAdapter(default={"review": "approved"})
    engine = build_engine(make_registry(northwest=northwest, legalshield=legalshield))

    workflow = await engine.workflows.create(
        "LLC formation",
        [
            {"service": "northwest", "action": "file", "parameters": {"state": "WA"}},
            {"service": "legalshield", "action": "review"},
        ],
    )
    await engine.workflows.start(workflow.id)
    await asyncio.wait_for(northwest.started.wait(), timeout=1)

    advanced = await engine.workflows.advance(workflow.id, "step-1", {"filingId": "F-1"})
    assert advanced.steps[0].status == StepStatus.COMPLETED
    assert advanced.steps[1].status == StepStatus.IN_PROGRESS

    northwest.release.set()
    assert await engine.tasks.drain(timeout=2)

    finished = await engine.workflows.get(workflow.id)
    assert finished.status == WorkflowStatus.COMPLETED
    assert finished.steps[0].result == {"filingId": "F-1"}
    assert finished.steps[1].result == {"review": "approved"}
    assert legalshield.calls[0][1]["input"] == {"filingId": "F-1"}


@pytest.mark.asyncio
async def test_concurrent_advance_accepts_exactly_one():
    engine = build_engine()
    workflow = await engine.workflows.create("approval", [user_step("approve")])
    started = await engine.workflows.start(workflow.id)
    assert started.steps[0].status == StepStatus.PENDING
    assert started.steps[0].awaiting_input is True

    results = await asyncio.gather(
        engine.workflows.advance(workflow.id, "step-1", {"by": "a"}),
        engine.workflows.advance(workflow.id, "step-1", {"by": "b"}),
        return_exceptions=True,
    )

    accepted = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(accepted) == 1
    assert len(rejected) == 1
    assert isinstance(rejected[0], InvalidStateError)

    final = await engine.workflows.get(workflow.id)
    assert final.status == WorkflowStatus.COMPLETED
    assert final.steps[0].result == accepted[0].steps[0].result
    await engine.tasks.drain(timeout=2)


@pytest.mark.asyncio
async def test_advance_rejects_step_that_was_not_dispatched():
    engine = build_engine()
    workflow = await engine.workflows.create("two", [user_step("a"), user_step("b")])
    await engine.workflows.start(workflow.id)

    with pytest.raises(InvalidStateError):
        await engine.workflows.advance(workflow.id, "step-2", {})
    with pytest.raises(NotFoundError):
        await engine.workflows.advance(workflow.id, "step-9", {})


@pytest.mark.asyncio
async def test_terminal_service_failure_fails_workflow():
    northwest = ScriptedAdapter([TerminalServiceError("state rejected filing")])
    engine = build_engine(make_registry(northwest=northwest))

    workflow = await engine.workflows.create(
        "formation",
        [{"service": "northwest", "action": "file"}, user_step("sign")],
    )
    await engine.workflows.start(workflow.id)
    assert await engine.tasks.drain(timeout=2)

    failed = await engine.workflows.get(workflow.id)
    assert failed.status == WorkflowStatus.FAILED
    assert failed.steps[0].status == StepStatus.FAILED
    assert failed.steps[0].attempts == 1
    assert failed.steps[1].status == StepStatus.PENDING
    assert "state rejected filing" in failed.error
    assert_status_invariant(failed)


@pytest.mark.asyncio
async def test_compensation_replaces_failed_step_and_workflow_continues():
    engine = build_engine()
    workflow = await engine.workflows.create(
        "formation",
        [
            user_step(
                "file online",
                compensation={"name": "file by mail", "service": "internal", "action": "echo"},
            ),
            user_step("review"),
        ],
    )
    await engine.workflows.start(workflow.id)

    compensated = await engine.workflows.fail(workflow.id, "step-1", "portal offline")
    assert compensated.status == WorkflowStatus.ACTIVE
    assert [step.id for step in compensated.steps] == ["step-1", "step-1-compensation", "step-2"]
    assert compensated.steps[0].status == StepStatus.SKIPPED
    assert compensated.steps[0].error == "portal offline"
    assert compensated.steps[0].compensated_by == "step-1-compensation"
    assert compensated.steps[1].status == StepStatus.IN_PROGRESS

    assert await engine.tasks.drain(timeout=2)
    waiting = await engine.workflows.get(workflow.id)
    assert waiting.steps[1].status == StepStatus.COMPLETED
    assert waiting.steps[2].awaiting_input is True

    done = await engine.workflows.advance(workflow.id, "step-2", {"ok": True})
    assert done.status == WorkflowStatus.COMPLETED
    assert_status_invariant(done)


@pytest.mark.asyncio
async def test_skip_pending_step_then_complete():
    engine = build_engine()
    workflow = await engine.workflows.create("optional", [user_step("required"), user_step("optional")])

    with pytest.raises(InvalidStateError):
        await engine.workflows.skip(workflow.id, "step-2")

    await engine.workflows.start(workflow.id)
    skipped = await engine.workflows.skip(workflow.id, "step-2", reason="not needed")
    assert skipped.steps[1].status == StepStatus.SKIPPED
    assert skipped.status == WorkflowStatus.ACTIVE

    done = await engine.workflows.advance(workflow.id, "step-1", {})
    assert done.status == WorkflowStatus.COMPLETED


@pytest.mark.asyncio
async def test_cancel_fails_dispatched_steps_once():
    engine = build_engine()
    workflow = await engine.workflows.create("approval", [user_step("approve"), user_step("ship")])
    await engine.workflows.start(workflow.id)

    cancelled = await engine.workflows.cancel(workflow.id, "customer withdrew")
    assert cancelled.status == WorkflowStatus.FAILED
    assert cancelled.error == "customer withdrew"
    assert cancelled.steps[0].status == StepStatus.FAILED
    assert cancelled.steps[1].status == StepStatus.PENDING

    with pytest.raises(InvalidStateError):
        await engine.workflows.cancel(workflow.id, "again")
    with pytest.raises(InvalidStateError):
        await engine.workflows.advance(workflow.id, "step-1", {})


@pytest.mark.asyncio
async def test_cancel_pending_workflow_fails_first_step():
    engine = build_engine()
    workflow = await engine.workflows.create("never started", [user_step("a"), user_step("b")])

    cancelled = await engine.workflows.cancel(workflow.id, "not needed")

    assert cancelled.status == WorkflowStatus.FAILED
    assert cancelled.steps[0].status == StepStatus.FAILED
    assert_status_invariant(cancelled)


@pytest.mark.asyncio
async def test_parallel_group_dispatches_together():
    engine = build_engine()
    workflow = await engine.workflows.create(
        "accommodations",
        [
            user_step("interpreter", parallel=True),
            user_step("captions", parallel=True),
            user_step("confirm"),
        ],
    )
    started = await engine.workflows.start(workflow.id)
    assert [step.awaiting_input for step in started.steps] == [True, True, False]

    after_first = await engine.workflows.advance(workflow.id, "step-1", {})
    assert after_first.steps[2].awaiting_input is False

    after_second = await engine.workflows.advance(workflow.id, "step-2", {})
    assert after_second.steps[2].awaiting_input is True


@pytest.mark.asyncio
async def test_find_waiting_matches_await_event_patterns():
    engine = build_engine()
    workflow = await engine.workflows.create(
        "wait for filing",
        [{"service": "internal", "action": "noop", "awaitEvent": "business.formation.*"}],
    )
    await engine.workflows.start(workflow.id)

    assert await engine.workflows.find_waiting("business.formation.completed") == [
        (workflow.id, "step-1")
    ]
    assert await engine.workflows.find_waiting("v4deaf.progress.updated") == []


@pytest.mark.asyncio
async def test_user_action_timeout_fails_waiting_step():
    engine = build_engine(user_action_timeout_seconds=5)
    workflow = await engine.workflows.create("approval", [user_step("approve")])
    await engine.workflows.start(workflow.id)

    assert await engine.tasks.drain(timeout=2)

    timed_out = await engine.workflows.get(workflow.id)
    assert timed_out.status == WorkflowStatus.FAILED
    assert "No input received within 5" in timed_out.steps[0].error


@pytest.mark.asyncio
async def test_lifecycle_events_are_published_in_order():
    engine = build_engine()
    received: list[Event] = []

    async def collect(event: Event) -> None:
        received.append(event)

    engine.bus.subscribe("workflow.*", collect)

    workflow = await engine.workflows.create("echo", [{"service": "internal", "action": "echo"}])
    await engine.workflows.start(workflow.id)
    assert await engine.tasks.drain(timeout=2)

    assert [event.event_type for event in received] == [
        "workflow.started",
        "workflow.step.started",
        "workflow.step.completed",
        "workflow.completed",
    ]
    assert all(event.correlation_id == workflow.id for event in received)
    assert received[2].data["stepId"] == "step-1"


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(25))
async def test_status_invariant_holds_over_random_outcomes(seed):
    rng = random.Random(seed)
    engine = build_engine()
    steps = [user_step(f"s{i}", parallel=rng.random() < 0.3) for i in range(rng.randint(1, 6))]
    workflow = await engine.workflows.create("random", steps)
    workflow = await engine.workflows.start(workflow.id)

    while not workflow.status.is_terminal:
        assert_status_invariant(workflow)
        dispatched = workflow.dispatched_steps
        undispatched = [
            s for s in workflow.steps if s.status == StepStatus.PENDING and not s.awaiting_input
        ]
        choice = rng.choice(["advance", "advance", "fail", "skip"])
        if choice == "skip" and undispatched:
            workflow = await engine.workflows.skip(workflow.id, rng.choice(undispatched).id)
        elif choice == "fail":
            workflow = await engine.workflows.fail(workflow.id, dispatched[0].id, "boom")
        else:
            workflow = await engine.workflows.advance(workflow.id, dispatched[0].id, {"n": seed})

    assert_status_invariant(workflow)
    assert_status_invariant(await engine.workflows.get(workflow.id))
    await engine.tasks.drain(timeout=2)


@pytest.mark.asyncio
async def test_user_action_step_without_result_stays_parked():
    engine = build_engine()
    workflow = await engine.workflows.create("approval", [user_step("approve")])
    started = await engine.workflows.start(workflow.id)

    parked = await engine.workflows.advance(workflow.id, "step-1")

    assert parked.status == WorkflowStatus.ACTIVE
    assert parked.steps[0].status == StepStatus.PENDING
    assert parked.steps[0].awaiting_input is True
    assert parked.steps[0].result is None
    assert parked.updated_at == started.updated_at

    done = await engine.workflows.advance(workflow.id, "step-1", {"approvedBy": "user-7"})
    assert done.status == WorkflowStatus.COMPLETED
    assert done.steps[0].result == {"approvedBy": "user-7"}


@pytest.mark.asyncio
async def test_workflow_locks_are_dropped_when_idle():
    engine = build_engine()
    workflow = await engine.workflows.create("approval", [user_step("approve"), user_step("ship")])
    await engine.workflows.start(workflow.id)

    await asyncio.gather(
        engine.workflows.advance(workflow.id, "step-1", {"by": "a"}),
        engine.workflows.advance(workflow.id, "step-1", {"by": "b"}),
        return_exceptions=True,
    )

    waiting = await engine.workflows.get(workflow.id)
    assert waiting.status == WorkflowStatus.ACTIVE
    assert engine.workflows._locks == {}
    assert engine.workflows._lock_users == {}
