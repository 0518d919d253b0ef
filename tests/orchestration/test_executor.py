"""Tests for StepExecutor - timeout and retry policy."""

import asyncio

import pytest

from core.domain.exceptions import TerminalServiceError, TransientServiceError, ValidationError
from orchestration.executor import StepExecutor
from orchestration.models import Step
from orchestration.workflow import RetryPolicy
from tests.fakes import HangingAdapter, RecordingSleep, ScriptedAdapter, make_registry


def make_step(service: str = "svc", action: str = "run", **parameters) -> Step:
    return Step(id="step-1", name=f"{service}.{action}", service=service, action=action, parameters=parameters)


@pytest.mark.asyncio
async def test_transient_failures_then_success_takes_three_attempts():
    adapter = ScriptedAdapter(
        [TransientServiceError("503"), TransientServiceError("503"), {"done": True}]
    )
    sleep = RecordingSleep()
    executor = StepExecutor(
        make_registry(svc=adapter),
        retry_policy=RetryPolicy(max_attempts=3, backoff_seconds=0.5, backoff_multiplier=2.0),
        sleep=sleep,
    )

    result = await executor.execute(make_step(), input_={"prev": 1})

    assert result.success is True
    assert result.attempts == 3
    assert result.output == {"done": True}
    assert sleep.delays == [0.5, 1.0]
    assert all(params["input"] == {"prev": 1} for _, params in adapter.calls)


@pytest.mark.asyncio
async def test_terminal_failure_is_not_retried():
    adapter = ScriptedAdapter([TerminalServiceError("bad request")])
    executor = StepExecutor(make_registry(svc=adapter), retry_policy=RetryPolicy(max_attempts=3))

    result = await executor.execute(make_step())

    assert result.success is False
    assert result.attempts == 1
    assert result.error == "bad request"
    assert result.error_kind == "TerminalServiceError"
    assert len(adapter.calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [ValidationError("missing field"), ValueError("unexpected")])
async def test_other_errors_fail_after_one_attempt(error):
    adapter = ScriptedAdapter([error])
    executor = StepExecutor(make_registry(svc=adapter), retry_policy=RetryPolicy(max_attempts=3))

    result = await executor.execute(make_step())

    assert result.success is False
    assert result.attempts == 1
    assert result.error_kind == type(error).__name__


@pytest.mark.asyncio
async def test_retries_exhausted_reports_last_error():
    adapter = ScriptedAdapter([ConnectionError("reset")] * 3)
    executor = StepExecutor(make_registry(svc=adapter), retry_policy=RetryPolicy(max_attempts=3))

    result = await executor.execute(make_step())

    assert result.success is False
    assert result.attempts == 3
    assert result.error == "reset"
    assert result.error_kind == "ConnectionError"


@pytest.mark.asyncio
async def test_timeout_counts_as_transient():
    adapter = HangingAdapter()
    executor = StepExecutor(
        make_registry(svc=adapter),
        timeout_seconds=0.01,
        retry_policy=RetryPolicy(max_attempts=2),
    )

    result = await asyncio.wait_for(executor.execute(make_step()), timeout=2)

    assert result.success is False
    assert result.attempts == 2
    assert adapter.calls == 2
    assert result.error_kind == "TimeoutError"
    assert "Timed out" in result.error


@pytest.mark.asyncio
async def test_unknown_service_fails_without_attempts():
    executor = StepExecutor(make_registry())

    result = await executor.execute(make_step(service="nowhere"))

    assert result.success is False
    assert result.attempts == 0
    assert result.error_kind == "NotFoundError"


def test_retry_policy_backoff_is_capped():
    policy = RetryPolicy(max_attempts=10, backoff_seconds=1.0, backoff_multiplier=3.0, max_backoff_seconds=5.0)

    assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 3.0, 5.0]
    assert RetryPolicy(backoff_seconds=0).delay_for(4) == 0.0
