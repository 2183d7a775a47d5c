"""Batch ingestion: extract each submitted URL and store it as a lead.

URLs are processed one after another; a failure only affects its own URL.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field
from rich.console import Console

from lead_pipeline.extractors import EventExtractor, ExtractionError, classify_url
from lead_pipeline.models import LeadComplete, Platform
from lead_pipeline.store import LeadRepository, StoreError

console = Console()


class IngestResult(BaseModel):
    """Outcome of one ingestion batch."""

    success: bool = True
    processed: int = 0
    results: list[LeadComplete] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def to_response(self) -> dict:
        """Payload for the caller; `errors` is omitted when empty."""
        payload = self.model_dump(mode="json", exclude={"errors"})
        if self.errors:
            payload["errors"] = list(self.errors)
        return payload


async def ingest_url(
    url: str,
    user_id: str,
    repo: LeadRepository,
    extractor: EventExtractor,
) -> LeadComplete:
    """Extract and persist a single URL. Raises ExtractionError or StoreError."""
    record = await extractor.extract(url)
    if not record.has_organizer:
        console.print(f"[yellow]No organizer found for {url}, storing placeholder[/yellow]")
    lead = repo.create_complete_lead(record, user_id)
    return repo.get_lead_complete(lead.id, user_id)


async def ingest_links(
    links: list[str],
    user_id: str,
    repo: LeadRepository,
    extractor: EventExtractor,
) -> IngestResult:
    """Ingest a batch of event URLs for one user.

    Per-URL problems (unknown host, duplicate, extraction or save failure)
    are collected in `errors`; only malformed input raises.
    """
    if not isinstance(links, list) or not links:
        raise ValueError("Links array is required")
    if not user_id:
        raise ValueError("User ID is required")

    result = IngestResult()

    for link in links:
        url = (link or "").strip() if isinstance(link, str) else ""
        if not url:
            continue

        if classify_url(url) == Platform.UNRECOGNIZED:
            result.errors.append(f"Invalid URL (must be Sympla or Eventbrite): {url}")
            continue

        if repo.find_event_by_url(url, user_id) is not None:
            console.print(f"[dim]Already ingested: {url}[/dim]")
            result.errors.append(f"URL already exists: {url}")
            continue

        try:
            lead = await ingest_url(url, user_id, repo, extractor)
        except ExtractionError as e:
            console.print(f"[red]Extraction failed for {url}: {e}[/red]")
            result.errors.append(f"Failed to extract data from: {url} ({e})")
            continue
        except StoreError as e:
            console.print(f"[red]Save failed for {url}: {e}[/red]")
            result.errors.append(f"Failed to save data for: {url} - {e}")
            continue
        except Exception as e:
            reason = str(e) or type(e).__name__
            console.print(f"[red]Unexpected error for {url}: {reason}[/red]")
            result.errors.append(f"Failed to extract data from: {url} ({reason})")
            continue

        result.results.append(lead)

    result.processed = len(result.results)
    console.print(
        f"\n[green]Processed {result.processed} URLs[/green]"
        + (f" [yellow]({len(result.errors)} warnings)[/yellow]" if result.errors else "")
    )
    return result


async def ingest_payload(
    payload: dict[str, Any],
    repo: LeadRepository,
    extractor: EventExtractor,
) -> IngestResult:
    """Entry point for a `{"links": [...], "userId": "..."}` request body."""
    links: Optional[list] = payload.get("links")
    user_id: Optional[str] = payload.get("userId")
    return await ingest_links(links, user_id, repo, extractor)
