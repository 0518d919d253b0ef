"""
Translation endpoints.

A translation runs as a one-step workflow on the PinkSync service; the
translation record is read back from that workflow.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status

from api.dependencies import get_caller_id, get_engine
from api.responses import success
from core.application.dtos import TranslateRequest
from core.domain.exceptions import NotFoundError
from orchestration import Engine
from orchestration.models import Workflow
from pinkflow_sdk.utils.datetime import to_iso


router = APIRouter(prefix="/translate", tags=["Translation"])

TRANSLATION_SERVICE = "pinksync"
TRANSLATION_ACTION = "translate"
TRANSLATION_KEY = "translation"
PREVIEW_LENGTH = 100


def _preview(content: str) -> str:
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[:PREVIEW_LENGTH] + "..."


def _translation(workflow: Workflow) -> Dict[str, Any]:
    request = workflow.metadata[TRANSLATION_KEY]
    step = workflow.steps[0]
    return {
        "id": workflow.id,
        "workflowId": workflow.id,
        "originalContent": {
            "type": request["contentType"],
            "language": request["sourceLanguage"],
            "content": request["preview"],
        },
        "translations": [
            {
                "language": request["targetLanguage"],
                "format": request["contentType"],
                "status": step.status.value,
                "result": step.result,
                "error": step.error,
            }
        ],
        "status": workflow.status.value,
        "requestedAt": to_iso(workflow.created_at),
        "completedAt": to_iso(workflow.completed_at),
    }


@router.post("", status_code=status.HTTP_202_ACCEPTED, summary="Request translation")
async def request_translation(
    request: TranslateRequest,
    engine: Engine = Depends(get_engine),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """
    Start a translation workflow and return its record.

    The record's status follows the workflow; poll GET /translate/{id}.
    """
    workflow = await engine.workflows.create(
        name="translation",
        description=f"Translate {request.source_language} -> {request.target_language}",
        owner=caller_id,
        metadata={
            TRANSLATION_KEY: {
                "sourceLanguage": request.source_language,
                "targetLanguage": request.target_language,
                "contentType": request.content_type,
                "preview": _preview(request.content),
            }
        },
        steps=[
            {
                "name": "translate",
                "service": TRANSLATION_SERVICE,
                "action": TRANSLATION_ACTION,
                "parameters": {
                    "content": request.content,
                    "sourceLanguage": request.source_language,
                    "targetLanguage": request.target_language,
                    "contentType": request.content_type,
                },
            }
        ],
    )
    workflow = await engine.workflows.start(workflow.id)
    return success(translation=_translation(workflow))


@router.get("/{translation_id}", summary="Get translation")
async def get_translation(translation_id: str, engine: Engine = Depends(get_engine)):
    workflow = await engine.workflows.get(translation_id)
    if TRANSLATION_KEY not in workflow.metadata:
        raise NotFoundError(
            f"Translation {translation_id} not found", details={"translationId": translation_id}
        )
    return success(translation=_translation(workflow))
