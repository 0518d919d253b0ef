"""
FastAPI Dependencies.

Provides the engine singleton and request-scoped values to the routes.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import Header, HTTPException, status

# Load environment variables ONCE before any settings objects are created
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=_PROJECT_ROOT / ".env")

from core.domain.repositories.record_store import RecordStore
from core.infrastructure.adapters.persistence.memory_record_store import InMemoryRecordStore
from core.infrastructure.database.config import get_session_factory
from core.infrastructure.database.repositories.sqlalchemy_record_store import SQLAlchemyRecordStore
from core.settings import AppSettings, get_app_settings
from orchestration import Engine, create_engine

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON INSTANCES
# =============================================================================

_engine: Optional[Engine] = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def build_record_store(settings: AppSettings) -> RecordStore:
    backend = settings.database.store_backend
    if backend == "database":
        logger.info("Using SQLAlchemyRecordStore")
        return SQLAlchemyRecordStore(get_session_factory())
    if backend != "memory":
        raise ValueError(f"Unknown store backend: {backend!r} (expected 'memory' or 'database')")
    logger.info("Using InMemoryRecordStore")
    return InMemoryRecordStore()


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        settings = get_app_settings()
        _engine = create_engine(settings, store=build_record_store(settings))
        logger.info(f"Created engine with services: {', '.join(_engine.registry.names)}")
    return _engine


def set_engine(engine: Engine) -> None:
    """Install a pre-built engine (tests, embedding)."""
    global _engine
    _engine = engine


def get_caller_id(x_caller_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Caller identity forwarded by the gateway; authorization happens upstream."""
    return x_caller_id or None


def require_automation_enabled() -> None:
    if not get_app_settings().platform.automation_enabled:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Automation is disabled",
        )


# =============================================================================
# RESET (for testing)
# =============================================================================

def reset_dependencies():
    global _engine
    _engine = None
    logger.info("Dependencies reset")
