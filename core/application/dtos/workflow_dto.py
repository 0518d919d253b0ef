"""
DTOs for workflow endpoints.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StepSpecDTO(BaseModel):
    """One step of a workflow creation request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    description: str = ""
    service: str = Field(..., description="Service the step delegates to", examples=["northwest"])
    action: str = Field(..., description="Action invoked on the service", examples=["file"])
    parameters: Dict[str, Any] = Field(default_factory=dict)
    is_user_action_required: bool = Field(default=False, alias="isUserActionRequired")
    user_action_description: Optional[str] = Field(default=None, alias="userActionDescription")
    await_event: Optional[str] = Field(
        default=None,
        alias="awaitEvent",
        description="Event type pattern that completes the step",
        examples=["business.formation.completed"],
    )
    parallel: bool = False
    compensation: Optional["StepSpecDTO"] = None

    def to_step(self) -> Dict[str, Any]:
        return {
            "name": self.name or "",
            "description": self.description,
            "service": self.service,
            "action": self.action,
            "parameters": self.parameters,
            "isUserActionRequired": self.is_user_action_required,
            "userActionDescription": self.user_action_description,
            "awaitEvent": self.await_event,
            "parallel": self.parallel,
            "compensation": self.compensation.to_step() if self.compensation else None,
        }


class CreateWorkflowRequest(BaseModel):
    """Request DTO for creating a workflow."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "name": "LLC formation",
                "steps": [
                    {"service": "northwest", "action": "file", "parameters": {"state": "WA"}},
                    {"service": "legalshield", "action": "review"},
                ],
                "autoStart": True,
            }
        },
    )

    name: str = Field(..., description="Workflow name")
    description: str = ""
    steps: List[StepSpecDTO] = Field(default_factory=list)
    owner: Optional[str] = Field(default=None, description="Defaults to the X-Caller-Id header")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    auto_start: bool = Field(default=False, alias="autoStart")


class CancelWorkflowRequest(BaseModel):
    reason: str = "Cancelled by caller"


class UpdateStepRequest(BaseModel):
    """Request DTO for completing, failing or skipping a step."""

    model_config = ConfigDict(populate_by_name=True)

    status: Optional[Literal["completed", "failed", "skipped"]] = Field(
        default=None, description="Defaults to completed when a result is given, failed when an error is"
    )
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def resolve_status(self) -> "UpdateStepRequest":
        if self.status is None:
            if self.result is not None:
                self.status = "completed"
            elif self.error:
                self.status = "failed"
            else:
                raise ValueError("status, result or error is required")
        if self.status == "failed" and not self.error:
            raise ValueError("error is required when status is failed")
        return self


StepSpecDTO.model_rebuild()
