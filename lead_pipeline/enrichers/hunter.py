"""Email-finder (Hunter domain search) lookup and contact ranking."""

import os
from typing import Any, Optional

import httpx
from rich.console import Console

from lead_pipeline.models import ContactCandidate

console = Console()

DEFAULT_API_URL = "https://api.hunter.io/v2/domain-search"
HUNTER_TIMEOUT = 30.0
SEARCH_LIMIT = 10

MIN_CONFIDENCE = 40  # Inclusive
MAX_CONTACTS = 5


class HunterError(Exception):
    """Email-finder request failed."""


def get_hunter_api_key() -> str:
    """Get email-finder API key from environment."""
    key = os.environ.get("HUNTER_API_KEY")
    if not key:
        raise ValueError("HUNTER_API_KEY environment variable not set")
    return key


def contact_name(record: dict) -> Optional[str]:
    """Joined first and last name when both are present, else whichever one is."""
    parts = [
        (record.get("first_name") or "").strip(),
        (record.get("last_name") or "").strip(),
    ]
    name = " ".join(p for p in parts if p)
    return name or None


def _confidence(record: dict) -> int:
    value = record.get("confidence")
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def rank_contacts(
    records: list[dict],
    threshold: int = MIN_CONFIDENCE,
    limit: int = MAX_CONTACTS,
) -> list[ContactCandidate]:
    """Keep records at or above threshold, best first, at most `limit`."""
    kept = [
        r for r in records
        if isinstance(r.get("value"), str) and r["value"].strip() and _confidence(r) >= threshold
    ]
    kept.sort(key=_confidence, reverse=True)

    return [
        ContactCandidate(
            name=contact_name(r),
            email=r["value"].strip().lower(),
            position=(r.get("position") or r.get("department") or None),
            confidence=min(_confidence(r), 100),
        )
        for r in kept[:limit]
    ]


async def search_domain_emails(
    client: httpx.AsyncClient,
    domain: str,
    api_key: Optional[str] = None,
    api_url: Optional[str] = None,
    timeout: float = HUNTER_TIMEOUT,
) -> list[dict[str, Any]]:
    """Raw email records the finder knows for a domain."""
    url = api_url or os.environ.get("HUNTER_API_URL", DEFAULT_API_URL)
    params = {
        "domain": domain,
        "api_key": api_key or get_hunter_api_key(),
        "limit": SEARCH_LIMIT,
    }

    try:
        response = await client.get(url, params=params, headers={"Accept": "application/json"}, timeout=timeout)
    except httpx.HTTPError as e:
        raise HunterError(f"email finder unreachable: {type(e).__name__}") from e

    if not response.is_success:
        raise HunterError(f"email finder error: {response.status_code}")

    try:
        data = response.json().get("data") or {}
    except (ValueError, AttributeError) as e:
        raise HunterError("email finder returned an unexpected payload") from e
    emails = data.get("emails") or []
    return [e for e in emails if isinstance(e, dict)]


class HunterClient:
    """Contact finder bound to one HTTP client and API key."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        threshold: int = MIN_CONFIDENCE,
        limit: int = MAX_CONTACTS,
    ):
        self.client = client
        self.api_key = api_key or get_hunter_api_key()
        self.threshold = threshold
        self.limit = limit

    async def find_contacts(self, domain: str) -> list[ContactCandidate]:
        records = await search_domain_emails(self.client, domain, api_key=self.api_key)
        contacts = rank_contacts(records, self.threshold, self.limit)
        console.print(f"[dim]Email finder: {len(records)} records, {len(contacts)} kept for {domain}[/dim]")
        return contacts
