"""
Integration hub endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends

from api.dependencies import get_engine
from api.responses import success
from core.application.dtos import ConnectIntegrationRequest
from orchestration import Engine


router = APIRouter(prefix="/integrations", tags=["Integrations"])


@router.get("", summary="List integrations")
async def list_integrations(engine: Engine = Depends(get_engine)):
    return success(integrations=[info.to_dict() for info in engine.registry.describe()])


@router.post("/{integration_id}/connect", summary="Connect integration")
async def connect_integration(
    integration_id: str,
    request: Optional[ConnectIntegrationRequest] = Body(default=None),
    engine: Engine = Depends(get_engine),
):
    request = request or ConnectIntegrationRequest()
    configuration = dict(request.configuration)
    if request.api_key:
        configuration["hasApiKey"] = True
    info = engine.registry.connect(integration_id, configuration)
    return success(
        connection={
            "integrationId": info.id,
            "status": info.status,
            "configuration": info.configuration,
            "connectedAt": info.to_dict()["connectedAt"],
        }
    )
