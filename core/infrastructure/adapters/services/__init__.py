"""Service adapters for workflow steps."""
from .http_service_adapter import HttpServiceAdapter
from .internal_service_adapter import InternalServiceAdapter

__all__ = ["HttpServiceAdapter", "InternalServiceAdapter"]
