"""Lead repository: idempotent create/upsert operations over the store.

Each write operation first asks the backend to run it as an atomic
procedure. If that fails for any reason the same steps are executed one by
one against the table primitives, so callers never see the difference.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from rich.console import Console

from lead_pipeline.models import (
    Contact,
    ContactCandidate,
    Event,
    EventRecord,
    Lead,
    LeadComplete,
    LeadStatusError,
    Organizer,
    SearchStatus,
    apply_transition,
)
from lead_pipeline.store.backend import (
    JsonStore,
    OwnershipError,
    RpcUnavailable,
    StoreError,
    UniqueViolation,
)

console = Console()


class LeadNotFoundError(StoreError):
    """Lead does not exist or belongs to another user."""


# -- steps shared by the atomic procedures and the fallback path -------------


def _get_or_create_organizer(
    backend: JsonStore,
    name: str,
    user_id: str,
    website: Optional[str] = None,
) -> dict:
    existing = backend.select_one("organizer", name=name, user_id=user_id)
    if existing:
        return existing
    try:
        return backend.insert("organizer", Organizer(name=name, user_id=user_id, website=website).to_row())
    except UniqueViolation:
        # Created concurrently: reuse the winner's row
        existing = backend.select_one("organizer", name=name, user_id=user_id)
        if existing is None:
            raise
        return existing


def _create_event_with_organizer(backend: JsonStore, record: dict, user_id: str) -> dict:
    # Source URLs are unique across users; check before creating the organizer
    if backend.select_one("event", source_url=record["source_url"]) is not None:
        raise UniqueViolation("event", ("source_url",), (record["source_url"],))
    organizer = _get_or_create_organizer(
        backend,
        record["organizer"],
        user_id,
        record.get("organizer_website"),
    )
    event = Event(
        user_id=user_id,
        organizer_id=organizer["id"],
        title=record["title"],
        date=record["date"],
        location=record["location"],
        source_url=record["source_url"],
    )
    return backend.insert("event", event.to_row())


def _create_complete_lead(backend: JsonStore, record: dict, user_id: str) -> dict:
    event = _create_event_with_organizer(backend, record, user_id)
    lead = Lead(user_id=user_id, organizer_id=event["organizer_id"], event_id=event["id"])
    return backend.insert("lead", lead.to_row())


def _owned_organizer(backend: JsonStore, organizer_id: str, user_id: str) -> dict:
    organizer = backend.get("organizer", organizer_id)
    if organizer is None or organizer.get("user_id") != user_id:
        raise OwnershipError(f"organizer {organizer_id} not found for user")
    return organizer


def _upsert_contact(
    backend: JsonStore,
    organizer_id: str,
    user_id: str,
    email: Optional[str],
    name: Optional[str] = None,
    position: Optional[str] = None,
) -> dict:
    """Create the contact, or fill only the empty fields of an existing one."""
    _owned_organizer(backend, organizer_id, user_id)

    existing = None
    if email:
        existing = backend.select_one("contact", organizer_id=organizer_id, email=email)

    if existing is None:
        try:
            row = backend.insert("contact", Contact(
                user_id=user_id,
                organizer_id=organizer_id,
                name=name,
                email=email,
                position=position,
            ).to_row())
            return {"contact": row, "created": True}
        except UniqueViolation:
            existing = backend.select_one("contact", organizer_id=organizer_id, email=email)
            if existing is None:
                raise

    changes = {
        column: value
        for column, value in (("name", name), ("position", position))
        if value and not existing.get(column)
    }
    if changes:
        existing = backend.update("contact", existing["id"], changes)
    return {"contact": existing, "created": False}


def _advance_lead_status(
    backend: JsonStore,
    lead_id: str,
    user_id: str,
    status: str,
    search_domain: Optional[str] = None,
    now: Optional[datetime] = None,
    verified: bool = False,
) -> dict:
    row = backend.select_one("lead", id=lead_id, user_id=user_id)
    if row is None:
        raise LeadNotFoundError(f"lead {lead_id} not found")
    changes = apply_transition(Lead.model_validate(row), SearchStatus(status), search_domain, now, verified)
    return backend.update("lead", lead_id, changes)


PROCEDURES: dict[str, Callable[..., Any]] = {
    "get_or_create_organizer": _get_or_create_organizer,
    "create_event_with_organizer": _create_event_with_organizer,
    "create_complete_lead": _create_complete_lead,
    "upsert_contact": _upsert_contact,
    "advance_lead_status": _advance_lead_status,
}


def open_store(path: Optional[Path] = None) -> JsonStore:
    """Create a store with the atomic procedures installed."""
    return JsonStore(path, procedures=PROCEDURES)


class LeadRepository:
    """Persistence service for organizers, events, contacts and leads.

    Constructed once and passed to the pipeline; every query is scoped to
    the owning user.
    """

    def __init__(self, backend: JsonStore):
        self.backend = backend

    def _call(self, procedure: str, /, **params: Any) -> Any:
        """Run a procedure atomically, falling back to the step-by-step version.

        Constraint and state errors raised by the steps themselves are final:
        the procedure already rolled back and the fallback would fail the same way.
        """
        try:
            return self.backend.rpc(procedure, **params)
        except RpcUnavailable:
            pass
        except (StoreError, LeadStatusError):
            raise
        except Exception as e:
            console.print(f"[yellow]Procedure {procedure} failed, using fallback: {e}[/yellow]")
        return PROCEDURES[procedure](self.backend, **params)

    # -- writes ------------------------------------------------------------

    def get_or_create_organizer(self, name: str, user_id: str, website: Optional[str] = None) -> Organizer:
        row = self._call("get_or_create_organizer", name=name, user_id=user_id, website=website)
        return Organizer.model_validate(row)

    def create_event_with_organizer(self, record: EventRecord, user_id: str) -> Event:
        row = self._call("create_event_with_organizer", record=record.model_dump(mode="json"), user_id=user_id)
        return Event.model_validate(row)

    def create_complete_lead(self, record: EventRecord, user_id: str) -> Lead:
        """Create organizer (if new), event and a pending lead for one record."""
        row = self._call("create_complete_lead", record=record.model_dump(mode="json"), user_id=user_id)
        return Lead.model_validate(row)

    def upsert_contact(
        self,
        organizer_id: str,
        user_id: str,
        candidate: ContactCandidate,
    ) -> tuple[Contact, bool]:
        """Returns the stored contact and whether it was newly created."""
        result = self._call(
            "upsert_contact",
            organizer_id=organizer_id,
            user_id=user_id,
            email=candidate.email,
            name=candidate.name,
            position=candidate.position,
        )
        return Contact.model_validate(result["contact"]), result["created"]

    def advance_lead_status(
        self,
        lead_id: str,
        user_id: str,
        status: SearchStatus,
        search_domain: Optional[str] = None,
        now: Optional[datetime] = None,
        verified: bool = False,
    ) -> Lead:
        row = self._call(
            "advance_lead_status",
            lead_id=lead_id,
            user_id=user_id,
            status=SearchStatus(status).value,
            search_domain=search_domain,
            now=now,
            verified=verified,
        )
        return Lead.model_validate(row)

    def backfill_website(self, organizer_id: str, user_id: str, website: str) -> bool:
        """Set the organizer website only if it is currently unset."""
        organizer = _owned_organizer(self.backend, organizer_id, user_id)
        if organizer.get("website"):
            return False
        self.backend.update("organizer", organizer_id, {"website": website})
        return True

    # -- reads -------------------------------------------------------------

    def get_organizer(self, organizer_id: str, user_id: str) -> Organizer:
        return Organizer.model_validate(_owned_organizer(self.backend, organizer_id, user_id))

    def get_lead(self, lead_id: str, user_id: str) -> Lead:
        row = self.backend.select_one("lead", id=lead_id, user_id=user_id)
        if row is None:
            raise LeadNotFoundError(f"lead {lead_id} not found")
        return Lead.model_validate(row)

    def find_event_by_url(self, url: str, user_id: str) -> Optional[Event]:
        row = self.backend.select_one("event", source_url=url, user_id=user_id)
        return Event.model_validate(row) if row else None

    def list_contacts(self, organizer_id: str, user_id: str) -> list[Contact]:
        rows = self.backend.select("contact", organizer_id=organizer_id, user_id=user_id)
        return [Contact.model_validate(r) for r in rows]

    def _complete(self, lead_row: dict) -> LeadComplete:
        organizer = self.backend.get("organizer", lead_row["organizer_id"]) or {}
        event = self.backend.get("event", lead_row["event_id"]) or {}
        contacts = self.backend.select("contact", organizer_id=lead_row["organizer_id"])
        return LeadComplete(
            id=lead_row["id"],
            user_id=lead_row["user_id"],
            search_status=lead_row["search_status"],
            verified=lead_row.get("verified", False),
            last_search_at=lead_row.get("last_search_at"),
            search_domain=lead_row.get("search_domain"),
            organizer_id=lead_row["organizer_id"],
            organizer_name=organizer.get("name", ""),
            organizer_website=organizer.get("website"),
            event_id=lead_row["event_id"],
            event_title=event.get("title", ""),
            event_date=event.get("date", ""),
            event_location=event.get("location", ""),
            source_url=event.get("source_url", ""),
            contact_count=len(contacts),
            created_at=lead_row["created_at"],
        )

    def get_lead_complete(self, lead_id: str, user_id: str) -> LeadComplete:
        row = self.backend.select_one("lead", id=lead_id, user_id=user_id)
        if row is None:
            raise LeadNotFoundError(f"lead {lead_id} not found")
        return self._complete(row)

    def list_leads_complete(self, user_id: str) -> list[LeadComplete]:
        """All leads of a user, newest first."""
        leads = [self._complete(r) for r in self.backend.select("lead", user_id=user_id)]
        leads.sort(key=lambda lead: lead.created_at, reverse=True)
        return leads

    def pending_searches(self, user_id: str, now: Optional[datetime] = None) -> list[Lead]:
        """Leads that have never been searched, plus errored ones past the cool-down."""
        leads = [Lead.model_validate(r) for r in self.backend.select("lead", user_id=user_id)]
        return [
            lead for lead in leads
            if lead.search_status == SearchStatus.PENDING or lead.retry_due(now)
        ]
