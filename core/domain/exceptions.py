"""
Orchestration error taxonomy.

Every error carries the HTTP status the API layer renders it with, so the
envelope stays stable no matter which component raised it.
"""
from typing import Any, Dict, Optional


class OrchestrationError(Exception):
    """Base class for all engine errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        return self.__class__.__name__


class ValidationError(OrchestrationError):
    """Malformed input. Never retried."""

    status_code = 400


class NotFoundError(OrchestrationError):
    """Unknown record id."""

    status_code = 404


class InvalidStateError(OrchestrationError):
    """Operation is illegal for the record's current status."""

    status_code = 409


class ServiceError(OrchestrationError):
    """Failure reported by, or while reaching, an external service."""

    status_code = 502
    transient: bool = False


class TransientServiceError(ServiceError):
    """Timeout or network failure. Retried per policy."""

    transient = True


class TerminalServiceError(ServiceError):
    """Permanent failure reported by the service. Fails immediately."""
