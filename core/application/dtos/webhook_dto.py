"""
DTOs for webhook endpoints.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterWebhookRequest(BaseModel):
    """Request DTO for registering a webhook."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "url": "https://hooks.example.com/pinkflow",
                "events": ["business.formation.*"],
                "secret": "s3cret",
            }
        }
    )

    url: str
    events: List[str] = Field(default_factory=list)
    secret: Optional[str] = Field(default=None, description="HMAC-SHA256 signing secret")


class UpdateWebhookRequest(BaseModel):
    status: Literal["active", "inactive"]
