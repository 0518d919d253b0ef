"""
Webhook transport over aiohttp.

Posts signed webhook bodies to registered endpoints.
"""
from typing import Mapping
import asyncio
import logging

import aiohttp

from core.application.interfaces import IWebhookSender
from core.domain.exceptions import TransientServiceError


logger = logging.getLogger(__name__)


class AiohttpWebhookSender(IWebhookSender):
    """Sends webhook POSTs and reports the response status."""

    async def send(
        self, url: str, body: bytes, headers: Mapping[str, str], timeout: float
    ) -> int:
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=timeout)
            ) as session:
                async with session.post(url, data=body, headers=dict(headers)) as response:
                    if response.status >= 400:
                        error_text = await response.text()
                        logger.warning(
                            f"Webhook endpoint {url} answered {response.status}: {error_text[:200]}"
                        )
                    return response.status
        except asyncio.TimeoutError as e:
            raise TransientServiceError(f"Webhook delivery to {url} timed out") from e
        except aiohttp.ClientError as e:
            raise TransientServiceError(f"Webhook delivery to {url} failed: {e}") from e
