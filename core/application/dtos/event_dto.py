"""
DTOs for event endpoints.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class IngestEventRequest(BaseModel):
    """Request DTO for ingesting an event."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "eventType": "business.formation.completed",
                "source": "northwest",
                "data": {"entityId": "ent-42"},
                "idempotencyKey": "nw-ent-42-completed",
            }
        },
    )

    event_type: str = Field(..., alias="eventType")
    source: str
    data: Dict[str, Any] = Field(default_factory=dict)
    idempotency_key: Optional[str] = Field(default=None, alias="idempotencyKey")
