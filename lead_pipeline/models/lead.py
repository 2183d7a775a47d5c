"""Lead model and its search-status state machine."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from lead_pipeline.models.base import Record, as_utc, utcnow

# Minimum wait before an errored search may run again
ERROR_RETRY_AFTER = timedelta(hours=24)


class SearchStatus(str, Enum):
    """Enrichment state of a lead."""

    PENDING = "pending"
    SEARCHING = "searching"
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


FORWARD_TRANSITIONS: dict[SearchStatus, set[SearchStatus]] = {
    SearchStatus.PENDING: {SearchStatus.SEARCHING},
    SearchStatus.SEARCHING: {SearchStatus.FOUND, SearchStatus.NOT_FOUND, SearchStatus.ERROR},
    SearchStatus.FOUND: set(),
    SearchStatus.NOT_FOUND: set(),
    SearchStatus.ERROR: set(),
}

# Searches that finished; `verified` is decided when entering one of these
SEARCH_FINISHED = {SearchStatus.FOUND, SearchStatus.NOT_FOUND}


class LeadStatusError(ValueError):
    """Raised for a search-status transition the state machine forbids."""


class Lead(Record):
    """Outreach unit linking one organizer to one event."""

    organizer_id: str
    event_id: str
    search_status: SearchStatus = SearchStatus.PENDING
    verified: bool = False
    last_search_at: Optional[datetime] = None
    search_domain: Optional[str] = None

    def retry_due(self, now: Optional[datetime] = None) -> bool:
        """True when an errored lead has cooled down long enough to search again."""
        if self.search_status != SearchStatus.ERROR:
            return False
        if self.last_search_at is None:
            return True
        now = as_utc(now) or utcnow()
        return now - as_utc(self.last_search_at) >= ERROR_RETRY_AFTER


def check_transition(lead: Lead, new_status: SearchStatus, now: Optional[datetime] = None) -> None:
    """Raise LeadStatusError unless lead may move to new_status at `now`."""
    new_status = SearchStatus(new_status)
    current = lead.search_status

    if new_status in FORWARD_TRANSITIONS[current]:
        return
    if current == SearchStatus.ERROR and new_status == SearchStatus.SEARCHING:
        if lead.retry_due(now):
            return
        raise LeadStatusError(
            f"lead {lead.id} failed at {lead.last_search_at}; retry allowed after "
            f"{int(ERROR_RETRY_AFTER.total_seconds() // 3600)}h"
        )
    raise LeadStatusError(f"lead {lead.id}: {current.value} -> {new_status.value} not allowed")


def apply_transition(
    lead: Lead,
    new_status: SearchStatus,
    search_domain: Optional[str] = None,
    now: Optional[datetime] = None,
    verified: bool = False,
) -> dict:
    """Validate a transition and return the column changes it implies.

    `verified` marks that contacts were found; it is recorded only when the
    search finishes.
    """
    check_transition(lead, new_status, now)
    now = as_utc(now) or utcnow()
    new_status = SearchStatus(new_status)

    changes = {
        "search_status": new_status.value,
        "last_search_at": now.isoformat(),
    }
    if new_status in SEARCH_FINISHED:
        changes["verified"] = bool(verified)
    if search_domain:
        changes["search_domain"] = search_domain
    return changes


class LeadComplete(BaseModel):
    """Read model joining a lead with its organizer and event."""

    id: str
    user_id: str
    search_status: SearchStatus
    verified: bool
    last_search_at: Optional[datetime] = None
    search_domain: Optional[str] = None

    organizer_id: str
    organizer_name: str
    organizer_website: Optional[str] = None

    event_id: str
    event_title: str
    event_date: str
    event_location: str
    source_url: str

    contact_count: int = 0
    created_at: datetime
