"""Step executor - runs one step against its service adapter with timeout and retry."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from core.domain.exceptions import (
    NotFoundError,
    OrchestrationError,
    TransientServiceError,
)
from pinkflow_sdk.logging import get_logger

from .models import Step, StepResult
from .registry import ServiceRegistry
from .workflow import RetryPolicy

RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    TransientServiceError,
    asyncio.TimeoutError,
    ConnectionError,
)


class StepExecutor:
    """Invokes a step's service action.

    Transient failures (``TransientServiceError``, timeouts, connection
    errors) are retried with the policy's backoff; anything else fails after
    one attempt. The executor never touches workflow state.
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize executor.

        Args:
            registry: Service registry used to resolve step services
            timeout_seconds: Limit for a single invoke call
            retry_policy: Retry policy for transient failures
            sleep: Awaitable used between attempts
        """
        self._registry = registry
        self._timeout_seconds = timeout_seconds
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._logger = get_logger("orchestration.executor")

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def execute(self, step: Step, input_: object | None = None) -> StepResult:
        """Execute a step.

        Args:
            step: Step to execute
            input_: Result of the previous completed step, passed as ``input``

        Returns:
            StepResult with execution details
        """
        started = time.monotonic()

        try:
            adapter = self._registry.resolve(step.service)
        except NotFoundError as exc:
            self._logger.warning("step_service_unknown", step_id=step.id, service=step.service)
            return StepResult(
                name=step.name,
                success=False,
                attempts=0,
                duration_ms=0,
                error=exc.message,
                error_kind=exc.kind,
            )

        parameters = dict(step.parameters)
        if input_ is not None:
            parameters["input"] = input_

        policy = self._retry_policy
        attempts = 0
        last_error: BaseException | None = None

        for attempt in range(1, policy.max_attempts + 1):
            attempts = attempt
            try:
                output = await asyncio.wait_for(
                    adapter.invoke(step.action, parameters), timeout=self._timeout_seconds
                )
            except RETRYABLE_EXCEPTIONS as exc:
                last_error = exc
                self._logger.warning(
                    "step_attempt_failed",
                    step_id=step.id,
                    service=step.service,
                    action=step.action,
                    attempt=attempt,
                    max_attempts=policy.max_attempts,
                    error=_describe(exc, self._timeout_seconds),
                )
                if attempt < policy.max_attempts:
                    delay = policy.delay_for(attempt)
                    if delay > 0:
                        await self._sleep(delay)
                continue
            except Exception as exc:
                last_error = exc
                self._logger.warning(
                    "step_attempt_rejected",
                    step_id=step.id,
                    service=step.service,
                    action=step.action,
                    attempt=attempt,
                    error=str(exc),
                    error_kind=type(exc).__name__,
                )
                break

            duration_ms = int((time.monotonic() - started) * 1000)
            self._logger.info(
                "step_executed",
                step_id=step.id,
                service=step.service,
                action=step.action,
                attempts=attempts,
                duration_ms=duration_ms,
            )
            return StepResult(
                name=step.name,
                success=True,
                attempts=attempts,
                duration_ms=duration_ms,
                output=output,
            )

        return StepResult(
            name=step.name,
            success=False,
            attempts=attempts,
            duration_ms=int((time.monotonic() - started) * 1000),
            error=_describe(last_error, self._timeout_seconds),
            error_kind=_kind(last_error),
        )


def _describe(exc: BaseException | None, timeout_seconds: float) -> str:
    if exc is None:
        return "Unknown error"
    if isinstance(exc, asyncio.TimeoutError):
        return f"Timed out after {timeout_seconds}s"
    if isinstance(exc, OrchestrationError):
        return exc.message
    return str(exc) or type(exc).__name__


def _kind(exc: BaseException | None) -> str | None:
    if exc is None:
        return None
    if isinstance(exc, OrchestrationError):
        return exc.kind
    if isinstance(exc, asyncio.TimeoutError):
        return "TimeoutError"
    return type(exc).__name__
