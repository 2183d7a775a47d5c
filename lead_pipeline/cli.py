"""CLI for the event lead pipeline."""

import asyncio
import os
from functools import partial
from pathlib import Path
from typing import Optional

import httpx
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from lead_pipeline.enrichers import HunterClient, discover_domain, enrich_lead, enrich_pending
from lead_pipeline.extractors import EventExtractor
from lead_pipeline.ingest import ingest_links
from lead_pipeline.models import LeadComplete, utcnow
from lead_pipeline.store import LeadRepository, StoreError, open_store
from lead_pipeline.store.backend import STORE_FILE

# Load environment variables (override=True to beat shell env vars)
load_dotenv(override=True)

app = typer.Typer(
    name="lead-pipeline",
    help="Event organizer lead pipeline",
    add_completion=False,
)
console = Console()


def get_repository() -> LeadRepository:
    path = Path(os.environ.get("LEAD_STORE_PATH") or STORE_FILE)
    return LeadRepository(open_store(path))


def print_leads(leads: list[LeadComplete], title: str) -> None:
    table = Table(title=title)
    table.add_column("Lead", style="dim", max_width=8)
    table.add_column("Organizer", style="cyan", max_width=30)
    table.add_column("Event", max_width=40)
    table.add_column("Date", style="green")
    table.add_column("Status", style="yellow")
    table.add_column("Contacts", justify="right")
    table.add_column("Domain", style="blue")

    for lead in leads:
        table.add_row(
            lead.id[:8],
            lead.organizer_name[:30],
            lead.event_title[:40],
            lead.event_date,
            lead.search_status.value,
            str(lead.contact_count),
            lead.search_domain or "-",
        )

    console.print(table)


@app.command()
def ingest(
    links: Optional[list[str]] = typer.Argument(None, help="Sympla or Eventbrite event URLs"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Text file with one URL per line"),
    user: str = typer.Option(..., "--user", "-u", help="Owning user id"),
):
    """Extract event pages and store organizer, event and lead."""
    urls = list(links or [])
    if file:
        urls.extend(line.strip() for line in file.read_text().splitlines() if line.strip())

    if not urls:
        console.print("[red]Error: no URLs given[/red]")
        raise typer.Exit(1)

    repo = get_repository()

    async def run():
        async with httpx.AsyncClient() as client:
            return await ingest_links(urls, user, repo, EventExtractor(client))

    result = asyncio.run(run())

    if result.results:
        print_leads(result.results, f"Ingested leads ({result.processed})")
    for error in result.errors:
        console.print(f"[yellow]  {error}[/yellow]")


@app.command()
def enrich(
    lead: Optional[str] = typer.Option(None, "--lead", "-l", help="Lead id to enrich"),
    company: Optional[str] = typer.Option(None, "--company", "-c", help="Company name to search for"),
    user: str = typer.Option(..., "--user", "-u", help="Owning user id"),
    limit: int = typer.Option(0, "--limit", help="Max pending leads when no --lead is given (0 = all)"),
):
    """Find website and contacts for one lead, or for every pending lead."""
    repo = get_repository()

    async def run():
        async with httpx.AsyncClient() as client:
            finder = HunterClient(client)
            domain_finder = partial(discover_domain, client=client)

            if lead:
                company_name = company or repo.get_organizer(repo.get_lead(lead, user).organizer_id, user).name
                return [await enrich_lead(
                    repo, user, lead, company_name,
                    domain_finder=domain_finder,
                    contact_finder=finder.find_contacts,
                )]
            return await enrich_pending(
                repo, user,
                domain_finder=domain_finder,
                contact_finder=finder.find_contacts,
                limit=limit or None,
            )

    try:
        results = asyncio.run(run())
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("[dim]Make sure to set HUNTER_API_KEY in .env[/dim]")
        raise typer.Exit(1)
    except StoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    for result in results:
        if result.success:
            console.print(
                f"  [green]{result.lead_id[:8]}[/green] {result.status.value} "
                f"({len(result.contacts)} contacts, domain {result.search_domain or '-'})"
            )
        else:
            console.print(f"  [red]{(result.lead_id or '?')[:8]}[/red] {result.error}")


@app.command()
def pending(
    user: str = typer.Option(..., "--user", "-u", help="Owning user id"),
):
    """List leads that are due for a contact search."""
    repo = get_repository()
    due = {lead.id for lead in repo.pending_searches(user, now=utcnow())}
    leads = [lead for lead in repo.list_leads_complete(user) if lead.id in due]

    if not leads:
        console.print("[dim]No leads waiting for a search[/dim]")
        return
    print_leads(leads, f"Pending searches ({len(leads)})")


@app.command()
def leads(
    user: str = typer.Option(..., "--user", "-u", help="Owning user id"),
    limit: int = typer.Option(50, "--limit", "-n", help="Max rows to show"),
):
    """Show all leads of a user, newest first."""
    repo = get_repository()
    rows = repo.list_leads_complete(user)

    if not rows:
        console.print("[dim]No leads yet[/dim]")
        return
    print_leads(rows[:limit], f"Leads ({len(rows)})")


if __name__ == "__main__":
    app()
