"""
Internal Service Adapter Implementation.

Runs step actions in process. Backs the platform's own modules
(business, v4deaf) and the "internal" service used for bookkeeping steps.
"""
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
import logging

from core.application.interfaces import IServiceAdapter
from core.domain.exceptions import TerminalServiceError
from pinkflow_sdk.utils.datetime import to_iso, utc_now


logger = logging.getLogger(__name__)

ActionHandler = Callable[[Mapping[str, Any]], Awaitable[Dict[str, Any]]]


async def _echo(parameters: Mapping[str, Any]) -> Dict[str, Any]:
    return {"echo": dict(parameters)}


async def _noop(parameters: Mapping[str, Any]) -> Dict[str, Any]:
    return {}


class InternalServiceAdapter(IServiceAdapter):
    """
    In-process adapter dispatching actions to registered async handlers.

    Ships with ``echo``, ``noop``, ``fetch`` and ``reconcile`` so sync routes
    between platform modules work without external endpoints.
    """

    def __init__(self, name: str = "internal", handlers: Optional[Mapping[str, ActionHandler]] = None):
        self.name = name
        self._handlers: Dict[str, ActionHandler] = {
            "echo": _echo,
            "noop": _noop,
            "fetch": self._fetch,
            "reconcile": self._reconcile,
        }
        self._handlers.update(handlers or {})

    def register_action(self, action: str, handler: ActionHandler) -> None:
        self._handlers[action] = handler

    @property
    def actions(self) -> list[str]:
        return sorted(self._handlers)

    async def invoke(self, action: str, parameters: Mapping[str, Any]) -> Dict[str, Any]:
        handler = self._handlers.get(action)
        if handler is None:
            raise TerminalServiceError(
                f"Service {self.name!r} has no action {action!r}",
                details={"actions": self.actions},
            )
        logger.debug(f"Internal action {self.name}.{action}")
        return await handler(parameters)

    async def _fetch(self, parameters: Mapping[str, Any]) -> Dict[str, Any]:
        source_id = parameters.get("sourceId")
        if not source_id:
            raise TerminalServiceError(f"{self.name}.fetch requires sourceId")
        return {
            "service": self.name,
            "recordId": source_id,
            "record": dict(parameters.get("record") or {}),
            "fetchedAt": to_iso(utc_now()),
        }

    async def _reconcile(self, parameters: Mapping[str, Any]) -> Dict[str, Any]:
        target_id = parameters.get("targetId")
        if not target_id:
            raise TerminalServiceError(f"{self.name}.reconcile requires targetId")
        fetched = parameters.get("input") or {}
        record = fetched.get("record") or {}
        return {
            "service": self.name,
            "targetId": target_id,
            "sourceId": fetched.get("recordId") or parameters.get("sourceId"),
            "fields": sorted(record),
            "reconciledAt": to_iso(utc_now()),
        }

    def describe(self) -> Dict[str, Any]:
        return {"actions": self.actions}
