"""Event bus - EventBusProtocol and InMemoryEventBus."""

from collections.abc import Awaitable, Callable
from typing import Protocol

from core.domain.events.event_types import is_valid_pattern, matches_event_type
from core.domain.exceptions import ValidationError
from pinkflow_sdk.logging import get_logger

from .events import Event

EventHandler = Callable[[Event], Awaitable[None]]


class EventBusProtocol(Protocol):
    """Protocol for event bus implementations."""

    async def publish(self, event: Event) -> None:
        """Publish an event.

        Args:
            event: Event to publish
        """
        ...

    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type pattern.

        Args:
            pattern: Exact event type, ``prefix.*`` or ``*``
            handler: Async handler function
        """
        ...


class InMemoryEventBus(EventBusProtocol):
    """In-memory event bus implementation.

    Handlers run one after another; a failing handler is logged and does
    not stop the others.
    """

    def __init__(self) -> None:
        """Initialize in-memory event bus."""
        self._handlers: dict[str, list[EventHandler]] = {}
        self._logger = get_logger("orchestration.event_bus")

    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type pattern.

        Args:
            pattern: Exact event type, ``prefix.*`` or ``*``
            handler: Async handler function

        Raises:
            ValidationError: If the pattern is malformed
        """
        if not is_valid_pattern(pattern):
            raise ValidationError(f"Invalid event pattern: {pattern!r}")
        self._handlers.setdefault(pattern, []).append(handler)

    def unsubscribe(self, pattern: str, handler: EventHandler) -> bool:
        handlers = self._handlers.get(pattern, [])
        if handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[pattern]
        return True

    def handlers_for(self, event_type: str) -> list[EventHandler]:
        return [
            handler
            for pattern, handlers in self._handlers.items()
            if matches_event_type(pattern, event_type)
            for handler in handlers
        ]

    async def publish(self, event: Event) -> None:
        """Publish an event to every handler whose pattern matches.

        Args:
            event: Event to publish
        """
        handlers = self.handlers_for(event.event_type)
        if not handlers:
            return

        self._logger.debug(
            "publishing_event",
            event_type=event.event_type,
            event_id=event.id,
            correlation_id=event.correlation_id,
            handler_count=len(handlers),
        )

        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                self._logger.error(
                    "handler_error",
                    event_type=event.event_type,
                    handler=getattr(handler, "__qualname__", str(handler)),
                    error=str(exc),
                    exc_info=True,
                )
