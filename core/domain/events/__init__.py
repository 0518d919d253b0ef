"""Event type taxonomy and subscription patterns."""
from .event_types import (
    WILDCARD,
    BusinessEvents,
    LegalEvents,
    PinkSyncEvents,
    V4DeafEvents,
    VideoEvents,
    WorkflowEvents,
    is_valid_pattern,
    matches_any,
    matches_event_type,
)

__all__ = [
    "WILDCARD",
    "BusinessEvents",
    "LegalEvents",
    "PinkSyncEvents",
    "V4DeafEvents",
    "VideoEvents",
    "WorkflowEvents",
    "is_valid_pattern",
    "matches_any",
    "matches_event_type",
]
