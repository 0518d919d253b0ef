"""
DTOs for sync endpoints.
"""
from pydantic import BaseModel, ConfigDict, Field


class SyncRequest(BaseModel):
    """Request DTO for starting a sync."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"example": {"sourceId": "biz-1", "targetId": "vr-9"}},
    )

    source_id: str = Field(..., alias="sourceId", min_length=1)
    target_id: str = Field(..., alias="targetId", min_length=1)
