"""
Workflow endpoints.

Create, start, inspect and cancel workflows, and report step outcomes.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, status

from api.dependencies import get_caller_id, get_engine
from api.responses import success
from core.application.dtos import CancelWorkflowRequest, CreateWorkflowRequest, UpdateStepRequest
from core.domain.enums import WorkflowStatus
from core.domain.exceptions import ValidationError
from orchestration import Engine


router = APIRouter(prefix="/workflows", tags=["Workflows"])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create workflow")
async def create_workflow(
    request: CreateWorkflowRequest,
    engine: Engine = Depends(get_engine),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """
    Create a workflow from an ordered list of steps.

    With autoStart the first steps are dispatched immediately.
    """
    workflow = await engine.workflows.create(
        name=request.name,
        steps=[step.to_step() for step in request.steps],
        owner=request.owner or caller_id,
        metadata=request.metadata,
        description=request.description,
    )
    if request.auto_start:
        workflow = await engine.workflows.start(workflow.id)
    return success(workflow=workflow.to_dict())


@router.get("", summary="List workflows")
async def list_workflows(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    owner: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    engine: Engine = Depends(get_engine),
):
    workflow_status = None
    if status_filter:
        try:
            workflow_status = WorkflowStatus(status_filter)
        except ValueError:
            raise ValidationError(f"Unknown workflow status: {status_filter}")

    workflows = await engine.workflows.list(status=workflow_status, owner=owner)
    page = workflows[offset:offset + limit]
    return success(
        workflows=[wf.to_dict() for wf in page],
        pagination={"total": len(workflows), "limit": limit, "offset": offset},
    )


@router.get("/{workflow_id}", summary="Get workflow")
async def get_workflow(workflow_id: str, engine: Engine = Depends(get_engine)):
    workflow = await engine.workflows.get(workflow_id)
    return success(workflow=workflow.to_dict())


@router.post("/{workflow_id}/start", summary="Start workflow")
async def start_workflow(workflow_id: str, engine: Engine = Depends(get_engine)):
    workflow = await engine.workflows.start(workflow_id)
    return success(workflow=workflow.to_dict())


@router.post("/{workflow_id}/cancel", summary="Cancel workflow")
async def cancel_workflow(
    workflow_id: str,
    request: Optional[CancelWorkflowRequest] = Body(default=None),
    engine: Engine = Depends(get_engine),
):
    reason = request.reason if request else CancelWorkflowRequest().reason
    workflow = await engine.workflows.cancel(workflow_id, reason)
    return success(workflow=workflow.to_dict())


@router.patch("/{workflow_id}/steps/{step_id}", summary="Report step outcome")
async def update_step(
    workflow_id: str,
    step_id: str,
    request: UpdateStepRequest,
    engine: Engine = Depends(get_engine),
):
    """
    Complete, fail or skip a step.

    Completing is how user-action steps (and steps waiting on an external
    system) are resolved.
    """
    if request.status == "completed":
        workflow = await engine.workflows.advance(workflow_id, step_id, request.result)
    elif request.status == "failed":
        workflow = await engine.workflows.fail(workflow_id, step_id, request.error)
    else:
        workflow = await engine.workflows.skip(workflow_id, step_id, request.reason)

    return success(
        step=workflow.step(step_id).to_dict(),
        workflowStatus=workflow.status.value,
    )
