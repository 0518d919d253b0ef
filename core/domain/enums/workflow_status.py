"""
Workflow and Step status enums.

Status values for workflow state tracking.
"""
from enum import Enum


class WorkflowStatus(str, Enum):
    """Workflow status values."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkflowStatus.COMPLETED, WorkflowStatus.FAILED)


class StepStatus(str, Enum):
    """Step status values."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_finished(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.SKIPPED)
