"""
PinkFlow - Main FastAPI Application.

REST layer over the workflow orchestration engine: workflows, events,
cross-service sync, webhooks and the integration hub.
"""
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import time

from api.dependencies import get_engine, require_automation_enabled
from api.responses import error_response
from api.routes import events, health, integrations, sync, translation, webhooks, workflows
from core.domain.exceptions import OrchestrationError
from core.infrastructure.database.config import close_database, init_database
from core.settings import get_app_settings
from pinkflow_sdk.logging import configure_logging


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

AUTOMATION_PREFIX = "/api/v1/automation"


# =============================================================================
# CREATE FASTAPI APP
# =============================================================================

app = FastAPI(
    title="PinkFlow - Automation API",
    description="""
    Workflow orchestration for business formation and accessibility services.

    Features:
    - Multi-step workflows over external services
    - Event ingestion with idempotency keys
    - Single-flight cross-service sync
    - Signed webhook delivery with retry
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# =============================================================================
# CORS MIDDLEWARE
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["*"],
)


# =============================================================================
# REQUEST LOGGING MIDDLEWARE
# =============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing."""
    start_time = time.time()

    logger.info(f"→ {request.method} {request.url.path}")

    response = await call_next(request)

    duration = time.time() - start_time
    logger.info(
        f"← {request.method} {request.url.path} "
        f"[{response.status_code}] ({duration:.3f}s)"
    )

    return response


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(OrchestrationError)
async def orchestration_exception_handler(request: Request, exc: OrchestrationError):
    """Map engine errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.kind} on {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.kind, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are a 400, like engine validation."""
    errors = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return error_response(400, "ValidationError", "Invalid request", {"errors": errors})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, "HTTPError", str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return error_response(500, "InternalError", "Internal server error", {"path": request.url.path})


# =============================================================================
# STARTUP/SHUTDOWN EVENTS
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    settings = get_app_settings()
    configure_logging(settings.platform.log_level, json_logs=settings.platform.json_logs)

    if settings.database.store_backend == "database":
        await init_database()

    await get_engine().start()
    logger.info("🚀 PinkFlow API starting up...")
    logger.info("📚 Swagger UI available at: /docs")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    await get_engine().shutdown()

    if get_app_settings().database.store_backend == "database":
        await close_database()
    logger.info("👋 PinkFlow API shutting down...")


# =============================================================================
# INCLUDE ROUTERS
# =============================================================================

app.include_router(
    health.router,
    tags=["Health"]
)

app.include_router(
    health.router,
    prefix=AUTOMATION_PREFIX,
    tags=["Health"],
    include_in_schema=False,
)

for router in (
    workflows.router,
    events.router,
    sync.router,
    translation.router,
    webhooks.router,
    integrations.router,
):
    app.include_router(
        router,
        prefix=AUTOMATION_PREFIX,
        dependencies=[Depends(require_automation_enabled)],
    )


# =============================================================================
# ROOT ENDPOINT
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """API root endpoint."""
    return {
        "status": "success",
        "message": "PinkFlow - Automation API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "automation": AUTOMATION_PREFIX,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
