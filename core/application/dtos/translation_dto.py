"""
DTOs for translation endpoints.
"""
from pydantic import BaseModel, ConfigDict, Field


class TranslateRequest(BaseModel):
    """Request DTO for a content translation."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "content": "Your LLC has been registered in Wyoming.",
                "sourceLanguage": "English",
                "targetLanguage": "ASL",
                "contentType": "video",
            }
        },
    )

    content: str = Field(..., min_length=1)
    source_language: str = Field(default="English", alias="sourceLanguage", min_length=1)
    target_language: str = Field(default="ASL", alias="targetLanguage", min_length=1)
    content_type: str = Field(default="text", alias="contentType", min_length=1)
