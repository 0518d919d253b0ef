"""Workflow definitions - RetryPolicy, StepDefinition, WorkflowDefinition."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from core.domain.events.event_types import is_valid_pattern
from core.domain.exceptions import ValidationError


@dataclass
class RetryPolicy:
    """Retry policy with capped exponential backoff."""

    max_attempts: int = 3
    backoff_seconds: float = 0.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        if self.backoff_seconds <= 0:
            return 0.0
        delay = self.backoff_seconds * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)


def _pick(data: Mapping[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


@dataclass
class StepDefinition:
    """Caller-supplied description of one step, before it gets an id."""

    service: str
    action: str
    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    is_user_action_required: bool = False
    user_action_description: str | None = None
    await_event: str | None = None
    parallel: bool = False
    compensation: "StepDefinition | None" = None

    def __post_init__(self) -> None:
        if not isinstance(self.service, str) or not self.service.strip():
            raise ValidationError("Step requires a service", details={"step": self.name or None})
        if not isinstance(self.action, str) or not self.action.strip():
            raise ValidationError("Step requires an action", details={"step": self.name or None})
        if not isinstance(self.parameters, dict):
            raise ValidationError("Step parameters must be an object", details={"step": self.name})
        if self.await_event is not None and not is_valid_pattern(self.await_event):
            raise ValidationError(
                f"Invalid awaitEvent pattern: {self.await_event!r}", details={"step": self.name}
            )
        if not self.name:
            self.name = f"{self.service}.{self.action}"

    @classmethod
    def coerce(cls, value: "StepDefinition | Mapping[str, Any]") -> "StepDefinition":
        """Build a definition from a camelCase or snake_case mapping."""
        if isinstance(value, StepDefinition):
            return value
        if not isinstance(value, Mapping):
            raise ValidationError("Each step must be an object")

        compensation = value.get("compensation")
        return cls(
            service=value.get("service") or "",
            action=value.get("action") or "",
            name=value.get("name") or "",
            description=value.get("description") or "",
            parameters=dict(value.get("parameters") or {}),
            is_user_action_required=bool(
                _pick(value, "isUserActionRequired", "is_user_action_required", False)
            ),
            user_action_description=_pick(
                value, "userActionDescription", "user_action_description"
            ),
            await_event=_pick(value, "awaitEvent", "await_event"),
            parallel=bool(value.get("parallel", False)),
            compensation=cls.coerce(compensation) if compensation else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "service": self.service,
            "action": self.action,
            "parameters": self.parameters,
            "isUserActionRequired": self.is_user_action_required,
            "userActionDescription": self.user_action_description,
            "awaitEvent": self.await_event,
            "parallel": self.parallel,
            "compensation": self.compensation.to_dict() if self.compensation else None,
        }


@dataclass
class WorkflowDefinition:
    """Definition of a workflow."""

    name: str
    steps: list[StepDefinition]
    description: str = ""
    owner: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        name: str,
        steps: Sequence["StepDefinition | Mapping[str, Any]"],
        description: str = "",
        owner: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "WorkflowDefinition":
        """Validate and build a definition.

        Raises:
            ValidationError: If the name is empty, there are no steps, or a
                step lacks a service or an action
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Workflow name is required")
        if not steps:
            raise ValidationError("Workflow requires at least one step")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("Workflow metadata must be an object")

        return cls(
            name=name.strip(),
            steps=[StepDefinition.coerce(step) for step in steps],
            description=description or "",
            owner=owner,
            metadata=dict(metadata or {}),
        )
