"""Contact enrichment for leads.

Runs after ingestion, one lead at a time: find the organizer's domain,
ask the email finder for contacts, persist what was found and move the
lead's search status forward.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from lead_pipeline.enrichers.domains import discover_domain, domain_from_website
from lead_pipeline.enrichers.hunter import HunterClient, HunterError
from lead_pipeline.models import ContactCandidate, LeadStatusError, SearchStatus
from lead_pipeline.store import LeadNotFoundError, LeadRepository

console = Console()

DomainFinder = Callable[[str], Awaitable[Optional[str]]]
ContactFinder = Callable[[str], Awaitable[list[ContactCandidate]]]


class EnrichmentResult(BaseModel):
    """Outcome of one lead's contact search."""

    success: bool
    lead_id: Optional[str] = None
    status: Optional[SearchStatus] = None
    contacts: list[ContactCandidate] = Field(default_factory=list)
    contacts_created: int = 0
    website: Optional[str] = None
    search_domain: Optional[str] = None
    error: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_response(self) -> dict:
        """camelCase payload for the calling UI."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


async def enrich_lead(
    repo: LeadRepository,
    user_id: str,
    lead_id: str,
    company_name: str,
    domain_finder: DomainFinder = discover_domain,
    contact_finder: Optional[ContactFinder] = None,
    now: Optional[datetime] = None,
) -> EnrichmentResult:
    """Search contacts for one lead and record the outcome on it.

    Failures inside the search set the lead to `error` and are returned,
    never raised. If something was already persisted when a failure hits,
    the lead is still marked `found` and the error is reported alongside.
    """
    if not user_id:
        raise ValueError("user id is required")
    if not lead_id or not (company_name or "").strip():
        raise ValueError("lead id and company name are required")
    if contact_finder is None:
        raise ValueError("a contact finder is required")

    try:
        lead = repo.get_lead(lead_id, user_id)
        repo.advance_lead_status(lead.id, user_id, SearchStatus.SEARCHING, now=now)
    except LeadNotFoundError:
        return EnrichmentResult(success=False, lead_id=lead_id, error="Lead not found or unauthorized")
    except LeadStatusError as e:
        return EnrichmentResult(success=False, lead_id=lead_id, status=lead.search_status, error=str(e))

    website: Optional[str] = None
    search_domain: Optional[str] = None
    contacts: list[ContactCandidate] = []
    created = 0
    saved_contacts = 0
    persisted = False
    error: Optional[str] = None

    console.print(f"[cyan]Searching contacts for {company_name}...[/cyan]")
    try:
        organizer = repo.get_organizer(lead.organizer_id, user_id)

        if organizer.website:
            website = organizer.website
        else:
            found = await domain_finder(company_name)
            website = f"https://{found}" if found else None
        search_domain = domain_from_website(website)

        if search_domain:
            contacts = await contact_finder(search_domain)

            if not organizer.website:
                persisted = repo.backfill_website(organizer.id, user_id, website) or persisted
            for candidate in contacts:
                _, was_created = repo.upsert_contact(organizer.id, user_id, candidate)
                persisted = True
                saved_contacts += 1
                created += int(was_created)

        status = SearchStatus.FOUND if (website or contacts) else SearchStatus.NOT_FOUND
    except Exception as e:
        error = str(e) or type(e).__name__
        status = SearchStatus.FOUND if persisted else SearchStatus.ERROR
        console.print(f"[red]Contact search failed for {company_name}: {error}[/red]")

    try:
        repo.advance_lead_status(
            lead.id, user_id, status,
            search_domain=search_domain,
            now=now,
            verified=saved_contacts > 0,
        )
    except Exception as e:
        # A lead left in `searching` would never be picked up again
        console.print(f"[red]Could not record {status.value} for lead {lead.id}: {e}[/red]")
        if status == SearchStatus.ERROR:
            raise
        error = error or str(e) or type(e).__name__
        status = SearchStatus.ERROR
        repo.advance_lead_status(lead.id, user_id, status, search_domain=search_domain, now=now)

    if status == SearchStatus.ERROR:
        return EnrichmentResult(
            success=False,
            lead_id=lead.id,
            status=status,
            search_domain=search_domain,
            error=error,
        )

    console.print(
        f"[green]{company_name}:[/green] {status.value} "
        f"[dim](website: {website or '-'}, {created} new contacts)[/dim]"
    )
    return EnrichmentResult(
        success=True,
        lead_id=lead.id,
        status=status,
        contacts=contacts,
        contacts_created=created,
        website=website,
        search_domain=search_domain,
        error=error,
    )


async def enrich_leads(
    repo: LeadRepository,
    user_id: str,
    leads: list[tuple[str, str]],
    domain_finder: DomainFinder = discover_domain,
    contact_finder: Optional[ContactFinder] = None,
    now: Optional[datetime] = None,
) -> list[EnrichmentResult]:
    """Enrich (lead_id, company_name) pairs sequentially.

    A failing lead is reported in its own result and never stops the batch.
    """
    results: list[EnrichmentResult] = []

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Enriching...", total=len(leads))

        for lead_id, company_name in leads:
            try:
                result = await enrich_lead(
                    repo,
                    user_id,
                    lead_id,
                    company_name,
                    domain_finder=domain_finder,
                    contact_finder=contact_finder,
                    now=now,
                )
            except Exception as e:
                console.print(f"[red]Error enriching lead {lead_id}: {e}[/red]")
                result = EnrichmentResult(success=False, lead_id=lead_id, error=str(e))
            results.append(result)
            progress.advance(task)

    found = sum(1 for r in results if r.status == SearchStatus.FOUND)
    console.print(f"[green]Enriched {found}/{len(leads)} leads[/green]")
    return results


async def enrich_pending(
    repo: LeadRepository,
    user_id: str,
    domain_finder: DomainFinder = discover_domain,
    contact_finder: Optional[ContactFinder] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[EnrichmentResult]:
    """Enrich every lead that is pending or due for an error retry."""
    due = repo.pending_searches(user_id, now=now)
    if limit:
        due = due[:limit]

    pairs = [
        (lead.id, repo.get_organizer(lead.organizer_id, user_id).name)
        for lead in due
    ]
    return await enrich_leads(repo, user_id, pairs, domain_finder, contact_finder, now)


__all__ = [
    "EnrichmentResult",
    "HunterClient",
    "HunterError",
    "discover_domain",
    "domain_from_website",
    "enrich_lead",
    "enrich_leads",
    "enrich_pending",
]
