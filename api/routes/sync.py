"""
Sync endpoints.

Start cross-service syncs and poll their status.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_caller_id, get_engine
from api.responses import success
from core.application.dtos import SyncRequest
from orchestration import Engine


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get("", summary="List sync operations")
async def list_sync_operations(
    sync_type: Optional[str] = None,
    engine: Engine = Depends(get_engine),
):
    operations = await engine.sync.list(sync_type=sync_type)
    return success(
        syncOperations=[op.to_dict() for op in operations],
        syncTypes=engine.sync.sync_types,
    )


@router.get("/status/{sync_id}", summary="Get sync status")
async def get_sync_status(sync_id: str, engine: Engine = Depends(get_engine)):
    operation = await engine.sync.get(sync_id)
    return success(syncOperation=operation.to_dict())


@router.post("/{sync_type}", summary="Start sync")
async def start_sync(
    sync_type: str,
    request: SyncRequest,
    engine: Engine = Depends(get_engine),
    caller_id: Optional[str] = Depends(get_caller_id),
):
    """
    Start a sync, or join the one already running for the same
    type, source and target.
    """
    operation = await engine.sync.sync(
        sync_type, request.source_id, request.target_id, owner=caller_id
    )
    return success(syncOperation=operation.to_dict())
