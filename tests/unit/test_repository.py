"""Tests for the lead repository and its store."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import EVENTBRITE_URL, SYMPLA_URL
from lead_pipeline.models import ContactCandidate, LeadStatusError, SearchStatus
from lead_pipeline.store import (
    ConstraintError,
    JsonStore,
    LeadNotFoundError,
    LeadRepository,
    OwnershipError,
    StoreError,
    UniqueViolation,
    open_store,
)

NOW = datetime(2025, 10, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(params=["procedures", "fallback"])
def any_repo(request, repo, plain_repo) -> LeadRepository:
    """Both the atomic-procedure and the step-by-step path."""
    return repo if request.param == "procedures" else plain_repo


class TestOrganizers:
    def test_get_or_create_is_idempotent(self, any_repo, user_id):
        first = any_repo.get_or_create_organizer("ACME", user_id)
        second = any_repo.get_or_create_organizer("ACME", user_id)

        assert first.id == second.id
        assert len(any_repo.backend.select("organizer")) == 1

    def test_same_name_per_user(self, any_repo, user_id, other_user_id):
        mine = any_repo.get_or_create_organizer("ACME", user_id)
        theirs = any_repo.get_or_create_organizer("ACME", other_user_id)
        assert mine.id != theirs.id

    def test_blank_name_rejected(self, store, user_id):
        with pytest.raises(ConstraintError):
            store.insert("organizer", {"name": "  ", "user_id": user_id})


class TestCompleteLead:
    def test_creates_organizer_event_and_pending_lead(self, any_repo, user_id, sample_record):
        lead = any_repo.create_complete_lead(sample_record, user_id)

        assert lead.search_status == SearchStatus.PENDING
        assert not lead.verified
        event = any_repo.find_event_by_url(SYMPLA_URL, user_id)
        assert event.id == lead.event_id
        assert event.organizer_id == lead.organizer_id
        assert any_repo.get_organizer(lead.organizer_id, user_id).name == "ACME"

    def test_events_share_organizer(self, any_repo, user_id, make_record):
        a = any_repo.create_complete_lead(make_record(SYMPLA_URL), user_id)
        b = any_repo.create_complete_lead(make_record(EVENTBRITE_URL), user_id)

        assert a.organizer_id == b.organizer_id
        assert len(any_repo.backend.select("organizer")) == 1
        assert len(any_repo.backend.select("lead")) == 2

    def test_source_url_is_globally_unique(self, repo, user_id, other_user_id, sample_record):
        repo.create_complete_lead(sample_record, user_id)
        with pytest.raises(UniqueViolation):
            repo.create_complete_lead(sample_record, other_user_id)
        assert len(repo.backend.select("event")) == 1

    def test_taken_url_leaves_no_organizer(self, any_repo, user_id, other_user_id, make_record):
        """A URL stored by another user is rejected before anything is written."""
        any_repo.create_complete_lead(make_record(SYMPLA_URL, organizer="Theirs"), other_user_id)

        with pytest.raises(UniqueViolation):
            any_repo.create_complete_lead(make_record(SYMPLA_URL, organizer="Mine"), user_id)

        assert any_repo.backend.select("organizer", user_id=user_id) == []
        assert any_repo.backend.select("lead", user_id=user_id) == []

    def test_constraint_errors_do_not_fall_back(self, repo, user_id, sample_record):
        calls = []

        def unique_failure(backend, **params):
            calls.append(params)
            raise UniqueViolation("event", ("source_url",), (SYMPLA_URL,))

        repo.backend.procedures["create_complete_lead"] = unique_failure

        with pytest.raises(UniqueViolation):
            repo.create_complete_lead(sample_record, user_id)
        assert len(calls) == 1
        assert repo.backend.select("organizer") == []

    def test_failed_procedure_rolls_back(self, store, user_id, sample_record):
        """The atomic procedure leaves no partial rows behind."""
        store.insert("organizer", {"name": "Other", "user_id": user_id})
        store.insert("event", {
            "user_id": user_id,
            "organizer_id": store.select_one("organizer")["id"],
            "title": "Taken",
            "source_url": SYMPLA_URL,
        })

        with pytest.raises(UniqueViolation):
            store.rpc("create_complete_lead", record=sample_record.model_dump(mode="json"), user_id=user_id)
        assert store.select("organizer", name="ACME") == []

    def test_read_model(self, any_repo, user_id, sample_record):
        lead = any_repo.create_complete_lead(sample_record, user_id)
        complete = any_repo.get_lead_complete(lead.id, user_id)

        assert complete.organizer_name == "ACME"
        assert complete.event_title == sample_record.title
        assert complete.source_url == SYMPLA_URL
        assert complete.contact_count == 0

    def test_other_user_cannot_read(self, repo, user_id, other_user_id, sample_record):
        lead = repo.create_complete_lead(sample_record, user_id)
        with pytest.raises(LeadNotFoundError):
            repo.get_lead(lead.id, other_user_id)
        assert repo.find_event_by_url(SYMPLA_URL, other_user_id) is None


class TestContacts:
    def test_upsert_fills_only_empty_fields(self, any_repo, user_id):
        organizer = any_repo.get_or_create_organizer("ACME", user_id)

        contact, created = any_repo.upsert_contact(
            organizer.id, user_id, ContactCandidate(email="ana@acme.com.br", position="CEO"),
        )
        assert created
        assert contact.name is None

        contact, created = any_repo.upsert_contact(
            organizer.id, user_id, ContactCandidate(email="ana@acme.com.br", name="Ana Souza", position="CTO"),
        )
        assert not created
        assert contact.name == "Ana Souza"
        assert contact.position == "CEO"

        contact, _ = any_repo.upsert_contact(
            organizer.id, user_id, ContactCandidate(email="ana@acme.com.br", name="Someone Else"),
        )
        assert contact.name == "Ana Souza"
        assert len(any_repo.list_contacts(organizer.id, user_id)) == 1

    def test_foreign_organizer_rejected(self, any_repo, user_id, other_user_id):
        organizer = any_repo.get_or_create_organizer("ACME", user_id)
        with pytest.raises(OwnershipError):
            any_repo.upsert_contact(organizer.id, other_user_id, ContactCandidate(email="x@acme.com.br"))

    def test_contact_needs_name_or_email(self, store, user_id):
        organizer = store.insert("organizer", {"name": "ACME", "user_id": user_id})
        with pytest.raises(ConstraintError):
            store.insert("contact", {"organizer_id": organizer["id"], "user_id": user_id})

    def test_contacts_without_email_not_deduplicated(self, store, user_id):
        organizer = store.insert("organizer", {"name": "ACME", "user_id": user_id})
        for _ in range(2):
            store.insert("contact", {"organizer_id": organizer["id"], "user_id": user_id, "name": "Recepção"})
        assert len(store.select("contact")) == 2

    def test_backfill_website_only_once(self, repo, user_id):
        organizer = repo.get_or_create_organizer("ACME", user_id)

        assert repo.backfill_website(organizer.id, user_id, "https://acme.com.br")
        assert not repo.backfill_website(organizer.id, user_id, "https://acme.com")
        assert repo.get_organizer(organizer.id, user_id).website == "https://acme.com.br"


class TestLeadStatus:
    def test_advance_and_pending_searches(self, any_repo, user_id, sample_record):
        lead = any_repo.create_complete_lead(sample_record, user_id)
        assert [pending.id for pending in any_repo.pending_searches(user_id, NOW)] == [lead.id]

        any_repo.advance_lead_status(lead.id, user_id, SearchStatus.SEARCHING, now=NOW)
        lead = any_repo.advance_lead_status(lead.id, user_id, SearchStatus.ERROR, now=NOW)
        assert lead.search_status == SearchStatus.ERROR
        assert any_repo.pending_searches(user_id, NOW + timedelta(hours=1)) == []
        assert len(any_repo.pending_searches(user_id, NOW + timedelta(hours=25))) == 1

    def test_invalid_transition_raises(self, any_repo, user_id, sample_record):
        lead = any_repo.create_complete_lead(sample_record, user_id)
        with pytest.raises(LeadStatusError):
            any_repo.advance_lead_status(lead.id, user_id, SearchStatus.FOUND, now=NOW)

    def test_invalid_status_rejected_by_store(self, store, repo, user_id, sample_record):
        lead = repo.create_complete_lead(sample_record, user_id)
        with pytest.raises(ConstraintError):
            store.update("lead", lead.id, {"search_status": "archived"})


class TestProcedureFallback:
    def test_broken_procedure_falls_back(self, user_id, sample_record):
        def broken(backend, **params):
            raise RuntimeError("function does not exist")

        store = open_store()
        store.procedures["create_complete_lead"] = broken
        lead = LeadRepository(store).create_complete_lead(sample_record, user_id)

        assert lead.search_status == SearchStatus.PENDING
        assert len(store.select("lead")) == 1


class TestPersistence:
    def test_round_trip_through_file(self, tmp_path, user_id, sample_record):
        path = tmp_path / "leads.json"
        LeadRepository(open_store(path)).create_complete_lead(sample_record, user_id)

        data = json.loads(path.read_text())
        assert len(data["lead"]) == 1

        reopened = LeadRepository(open_store(path))
        assert reopened.find_event_by_url(SYMPLA_URL, user_id) is not None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "leads.json"
        path.write_text("{broken")
        with pytest.raises(StoreError, match="corrupt store file"):
            JsonStore(path)
