"""Data models for the lead pipeline."""

from lead_pipeline.models.base import utcnow
from lead_pipeline.models.event import (
    NOT_INFORMED,
    Event,
    EventRecord,
    ExtractedEvent,
    Platform,
)
from lead_pipeline.models.organizer import Contact, ContactCandidate, Organizer
from lead_pipeline.models.lead import (
    ERROR_RETRY_AFTER,
    Lead,
    LeadComplete,
    LeadStatusError,
    SearchStatus,
    apply_transition,
    check_transition,
)

__all__ = [
    "NOT_INFORMED",
    "Event",
    "EventRecord",
    "ExtractedEvent",
    "Platform",
    "Contact",
    "ContactCandidate",
    "Organizer",
    "ERROR_RETRY_AFTER",
    "Lead",
    "LeadComplete",
    "LeadStatusError",
    "SearchStatus",
    "apply_transition",
    "check_transition",
    "utcnow",
]
