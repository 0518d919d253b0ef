"""Application layer interfaces."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional


class IServiceAdapter(ABC):
    """
    Interface for an external service a workflow step delegates to.

    Implementations convert every failure into TransientServiceError
    (timeouts, network errors, 5xx) or TerminalServiceError (anything the
    service rejected for good), so the executor can apply its retry policy
    without knowing the transport.
    """

    @abstractmethod
    async def invoke(self, action: str, parameters: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Invoke an action on the service.

        Args:
            action: Action name (e.g. "file", "review", "fetch")
            parameters: Action parameters

        Returns:
            Result map

        Raises:
            TransientServiceError: If the call may succeed when retried
            TerminalServiceError: If the service rejected the call
        """
        pass

    def describe(self) -> Dict[str, Any]:
        """Adapter configuration safe to expose over the API."""
        return {}


class IIdempotencyIndex(ABC):
    """
    Interface for the event deduplication index.

    Keys are remembered for a retention window; after it expires the same
    key is accepted again.
    """

    @abstractmethod
    async def claim(self, key: str, event_id: str) -> Optional[str]:
        """
        Claim an idempotency key for an event.

        Args:
            key: Producer-supplied idempotency key
            event_id: Id of the event that wants the key

        Returns:
            None if the key was free and is now bound to event_id,
            otherwise the id of the event that already holds it
        """
        pass

    async def release(self, key: str) -> None:
        """Forget a claimed key (used when storing the claiming event fails)."""
        return None

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None


class IWebhookSender(ABC):
    """Interface for the HTTP transport used by webhook delivery."""

    @abstractmethod
    async def send(
        self, url: str, body: bytes, headers: Mapping[str, str], timeout: float
    ) -> int:
        """
        POST a webhook body.

        Returns:
            HTTP status code of the response

        Raises:
            TransientServiceError: On timeouts and connection failures
        """
        pass
