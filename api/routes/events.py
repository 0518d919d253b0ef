"""
Event endpoints.

Ingest inbound events and inspect their processing.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from api.dependencies import get_engine
from api.responses import duplicate, success
from core.application.dtos import IngestEventRequest
from core.domain.enums import EventProcessingStatus
from core.domain.exceptions import ValidationError
from orchestration import Engine


router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", status_code=status.HTTP_201_CREATED, summary="Ingest event")
async def ingest_event(request: IngestEventRequest, engine: Engine = Depends(get_engine)):
    """
    Store an event and dispatch it in the background.

    A repeated idempotencyKey answers 200 with the original event.
    """
    result = await engine.events.ingest(
        event_type=request.event_type,
        source=request.source,
        data=request.data,
        idempotency_key=request.idempotency_key,
    )
    if result.duplicate:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=duplicate(event=result.event.to_dict()),
        )
    return success(event=result.event.to_dict())


@router.get("", summary="List events")
async def list_events(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    event_type: Optional[str] = Query(default=None, alias="type"),
    limit: int = Query(default=100, ge=1, le=1000),
    engine: Engine = Depends(get_engine),
):
    processing_status = None
    if status_filter:
        try:
            processing_status = EventProcessingStatus(status_filter)
        except ValueError:
            raise ValidationError(f"Unknown processing status: {status_filter}")

    events = await engine.events.list(status=processing_status, event_type=event_type)
    return success(
        events=[event.to_dict() for event in events[:limit]],
        total=len(events),
        filter={"status": status_filter, "type": event_type},
    )


@router.get("/{event_id}", summary="Get event")
async def get_event(event_id: str, engine: Engine = Depends(get_engine)):
    event = await engine.events.get(event_id)
    return success(event=event.to_dict())


@router.post("/{event_id}/reprocess", summary="Reprocess event")
async def reprocess_event(event_id: str, engine: Engine = Depends(get_engine)):
    event = await engine.events.reprocess(event_id)
    return success(event=event.to_dict())
