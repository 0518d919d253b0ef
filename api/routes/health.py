"""
Health check endpoints.

Used for monitoring and load balancer health checks.
"""
import platform

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_engine
from api.responses import success
from core.domain.repositories.record_store import WORKFLOWS
from orchestration import Engine
from pinkflow_sdk.utils.datetime import utc_now


router = APIRouter()


@router.get("/health")
async def health_check(engine: Engine = Depends(get_engine)):
    """
    Health check endpoint.

    Returns system health status.
    """
    return success(
        health="healthy",
        timestamp=utc_now().isoformat(),
        service="pinkflow",
        version=engine.settings.platform.version,
        python_version=platform.python_version(),
    )


@router.get("/health/ready")
async def readiness_check(engine: Engine = Depends(get_engine)):
    """
    Readiness check endpoint.

    Returns whether the service is ready to accept traffic.
    """
    checks = {"api": "ok", "services": len(engine.registry.names)}
    try:
        await engine.store.get(WORKFLOWS, "__readiness__")
        checks["store"] = "ok"
    except Exception as e:
        checks["store"] = f"error: {e}"
        return JSONResponse(
            status_code=503,
            content={
                "status": "error",
                "error": "NotReady",
                "message": "Record store unavailable",
                "checks": checks,
            },
        )

    return success(ready=True, timestamp=utc_now().isoformat(), checks=checks)
