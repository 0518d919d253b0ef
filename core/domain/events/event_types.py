"""
Event type taxonomy.

Event types are dot-namespaced (``business.formation.completed``).
Subscriptions use patterns: ``*`` matches everything, ``prefix.*`` matches
every type under ``prefix.``, anything else must match exactly.
"""
from typing import Iterable


class BusinessEvents:
    FORMATION_SUBMITTED = "business.formation.submitted"
    FORMATION_COMPLETED = "business.formation.completed"
    FORMATION_FAILED = "business.formation.failed"
    ANALYTICS_GENERATED = "business.analytics.generated"


class V4DeafEvents:
    PROGRESS_UPDATED = "v4deaf.progress.updated"
    ACCOMMODATION_REQUESTED = "v4deaf.accommodation.requested"
    ACCOMMODATION_APPROVED = "v4deaf.accommodation.approved"


class PinkSyncEvents:
    SESSION_SCHEDULED = "pinksync.session.scheduled"
    SESSION_COMPLETED = "pinksync.session.completed"
    TRANSFORMATION_COMPLETED = "pinksync.transformation.completed"


class VideoEvents:
    UPLOADED = "video.uploaded"
    PROCESSED = "video.processed"
    CAPTIONED = "video.captioned"


class LegalEvents:
    CONSULTATION_SCHEDULED = "legal.consultation.scheduled"
    CONSULTATION_COMPLETED = "legal.consultation.completed"
    DOCUMENT_GENERATED = "legal.document.generated"


class WorkflowEvents:
    """Lifecycle events emitted by the engine itself."""

    STARTED = "workflow.started"
    STEP_STARTED = "workflow.step.started"
    STEP_WAITING = "workflow.step.waiting"
    STEP_COMPLETED = "workflow.step.completed"
    STEP_FAILED = "workflow.step.failed"
    STEP_SKIPPED = "workflow.step.skipped"
    COMPLETED = "workflow.completed"
    FAILED = "workflow.failed"

    ALL = "workflow.*"


WILDCARD = "*"


def matches_event_type(pattern: str, event_type: str) -> bool:
    """Check whether ``event_type`` falls under a subscription ``pattern``."""
    if not pattern or not event_type:
        return False
    if pattern == WILDCARD:
        return True
    if pattern.endswith(".*"):
        return event_type.startswith(pattern[:-1])
    return pattern == event_type


def matches_any(patterns: Iterable[str], event_type: str) -> bool:
    return any(matches_event_type(p, event_type) for p in patterns)


def is_valid_pattern(pattern: str) -> bool:
    """A pattern is ``*``, a dotted name, or a dotted name ending in ``.*``."""
    if pattern == WILDCARD:
        return True
    if not pattern or pattern.startswith(".") or " " in pattern:
        return False
    body = pattern[:-2] if pattern.endswith(".*") else pattern
    return bool(body) and "*" not in body and all(body.split("."))
