"""
HTTP Service Adapter Implementation.

Invokes step actions on a remote service over HTTP via aiohttp.
"""
from typing import Any, Dict, Mapping, Optional
import asyncio
import logging

import aiohttp

from core.application.interfaces import IServiceAdapter
from core.domain.exceptions import TerminalServiceError, TransientServiceError


logger = logging.getLogger(__name__)

# Status codes worth retrying
RETRYABLE_STATUS_CODES = frozenset({408, 429})


class HttpServiceAdapter(IServiceAdapter):
    """
    HTTP implementation of a service adapter.

    Every action maps to ``POST {base_url}/{action}`` with the step
    parameters as JSON body. The response body (JSON object) is the step
    result.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize HTTP service adapter.

        Args:
            name: Service name used in workflow steps
            base_url: Service base URL
            api_key: Optional bearer token
            timeout_seconds: Per-request timeout
            headers: Extra request headers
        """
        if not base_url:
            raise ValueError(f"base_url is required for service {name!r}")
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.headers = dict(headers or {})

    def action_url(self, action: str) -> str:
        return f"{self.base_url}/{action.lstrip('/')}"

    async def invoke(self, action: str, parameters: Mapping[str, Any]) -> Dict[str, Any]:
        url = self.action_url(action)
        headers = {"Content-Type": "application/json", **self.headers}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=dict(parameters), headers=headers) as response:
                    if response.status in RETRYABLE_STATUS_CODES or response.status >= 500:
                        body = await response.text()
                        raise TransientServiceError(
                            f"{self.name} {action} returned {response.status}",
                            details={"status": response.status, "body": body[:500]},
                        )
                    if response.status >= 400:
                        body = await response.text()
                        raise TerminalServiceError(
                            f"{self.name} {action} rejected with {response.status}",
                            details={"status": response.status, "body": body[:500]},
                        )
                    if response.status == 204:
                        return {}
                    payload = await response.json(content_type=None)
        except (TransientServiceError, TerminalServiceError):
            raise
        except asyncio.TimeoutError as e:
            raise TransientServiceError(f"{self.name} {action} timed out") from e
        except (aiohttp.ContentTypeError, ValueError) as e:
            raise TerminalServiceError(f"{self.name} {action} returned invalid JSON") from e
        except aiohttp.ClientError as e:
            raise TransientServiceError(f"{self.name} {action} failed: {e}") from e

        if payload is None:
            return {}
        if not isinstance(payload, dict):
            return {"value": payload}
        return payload

    def describe(self) -> Dict[str, Any]:
        return {
            "baseUrl": self.base_url,
            "timeoutSeconds": self.timeout_seconds,
            "authenticated": bool(self.api_key),
        }

    def __repr__(self) -> str:
        return f"HttpServiceAdapter(name={self.name!r}, base_url={self.base_url!r})"
