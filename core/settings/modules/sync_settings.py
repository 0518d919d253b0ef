from __future__ import annotations

from typing import Dict, List

from pydantic import Field, field_validator

from core.settings.base import PinkFlowBaseSettings


DEFAULT_SYNC_ROUTES: Dict[str, List[str]] = {
    "business-vr": ["business", "v4deaf"],
    "pinksync-platform": ["pinksync", "internal"],
    "full": ["business", "internal"],
}


class SyncSettings(PinkFlowBaseSettings):
    """
    Sync coordinator settings.

    ``routes`` maps a sync type to ``[source_service, target_service]``.
    ``scheduled_jobs`` entries look like ``"business-vr:biz-1:vr-9"``.
    """

    auto_sync: bool = Field(default=True, alias="PINKFLOW_SYNC_AUTO")
    sync_interval_ms: int = Field(default=300000, ge=1000, alias="PINKFLOW_SYNC_INTERVAL_MS")
    routes: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_SYNC_ROUTES.items()},
        alias="PINKFLOW_SYNC_ROUTES",
    )
    scheduled_jobs: List[str] = Field(default_factory=list, alias="PINKFLOW_SYNC_SCHEDULED_JOBS")

    @field_validator("routes")
    @classmethod
    def validate_routes(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for sync_type, services in v.items():
            if len(services) != 2 or not all(services):
                raise ValueError(
                    f"Sync route {sync_type!r} must name exactly [source, target] services"
                )
        return v

    @field_validator("scheduled_jobs")
    @classmethod
    def validate_jobs(cls, v: List[str]) -> List[str]:
        for job in v:
            parts = job.split(":")
            if len(parts) != 3 or not all(parts):
                raise ValueError(f"Scheduled job {job!r} must look like 'type:sourceId:targetId'")
        return v
