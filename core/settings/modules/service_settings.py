from __future__ import annotations

from typing import Dict, Optional

from pydantic import Field

from core.settings.base import PinkFlowBaseSettings


class ServiceSettings(PinkFlowBaseSettings):
    """
    External service endpoints reachable from workflow steps.
    An empty URL leaves the service unregistered.
    """

    pinksync_url: str = Field(default="https://api.pinksync.ai/v1", alias="PINKSYNC_API_URL")
    northwest_url: str = Field(default="https://api.northwest.com", alias="NORTHWEST_API_URL")
    legalshield_url: str = Field(default="https://api.legalshield.com", alias="LEGALSHIELD_API_URL")
    mux_url: str = Field(default="https://api.mux.com", alias="MUX_API_URL")
    notion_url: str = Field(default="https://api.notion.com/v1", alias="NOTION_API_URL")
    yeoman_url: str = Field(default="", alias="YEOMAN_API_URL")

    api_key: Optional[str] = Field(default=None, alias="PINKFLOW_SERVICES_API_KEY")
    timeout_seconds: float = Field(default=30.0, gt=0, alias="PINKFLOW_SERVICES_TIMEOUT_SECONDS")

    def endpoints(self) -> Dict[str, str]:
        """Configured service name -> base URL."""
        urls = {
            "pinksync": self.pinksync_url,
            "northwest": self.northwest_url,
            "legalshield": self.legalshield_url,
            "mux": self.mux_url,
            "notion": self.notion_url,
            "yeoman": self.yeoman_url,
        }
        return {name: url for name, url in urls.items() if url}
