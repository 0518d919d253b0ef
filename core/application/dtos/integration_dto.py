"""
DTOs for integration hub endpoints.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConnectIntegrationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(default=None, alias="apiKey")
    configuration: Dict[str, Any] = Field(default_factory=dict)
