"""Guess an organizer's website domain from its name and check the guesses."""

import asyncio
import re
import unicodedata
from typing import Optional
from urllib.parse import urlparse

import httpx
from rich.console import Console

from lead_pipeline.extractors.fetch import USER_AGENTS

console = Console()

CHECK_TIMEOUT = 5.0  # seconds per HEAD request

# Tried in this order; earlier entries win when several answer
DOMAIN_TEMPLATES = [
    "{slug}.com.br",
    "{slug}.com",
    "www.{slug}.com.br",
    "www.{slug}.com",
]


def normalize_company_name(name: str) -> str:
    """Lower-case, strip diacritics and non-alphanumerics, collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", name or "")
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))
    cleaned = re.sub(r"[^a-z0-9\s]", "", ascii_only.lower())
    return re.sub(r"\s+", " ", cleaned).strip()


def candidate_domains(name: str) -> list[str]:
    """Candidate domains for a company name, most likely first."""
    slug = normalize_company_name(name).replace(" ", "")
    if not slug:
        return []
    return [template.format(slug=slug) for template in DOMAIN_TEMPLATES]


def domain_from_website(website: Optional[str]) -> Optional[str]:
    """Bare host of a website URL, without scheme or leading www."""
    if not website:
        return None
    value = website.strip()
    if "://" not in value:
        value = f"https://{value}"
    host = (urlparse(value).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


async def check_domain(client: httpx.AsyncClient, domain: str, timeout: float = CHECK_TIMEOUT) -> bool:
    """True if https://<domain> answers a HEAD request with a 2xx status."""
    try:
        response = await client.head(
            f"https://{domain}",
            headers={"User-Agent": USER_AGENTS[0]},
            timeout=timeout,
            follow_redirects=True,
        )
    except httpx.HTTPError:
        return False
    return response.is_success


async def discover_domain(
    name: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = CHECK_TIMEOUT,
) -> Optional[str]:
    """Return the first candidate domain that responds, or None.

    All checks start at once; the result follows candidate order, and the
    remaining checks are cancelled as soon as a winner is known.
    """
    candidates = candidate_domains(name)
    if not candidates:
        return None

    owns_client = client is None
    client = client or httpx.AsyncClient()
    tasks = [asyncio.create_task(check_domain(client, domain, timeout)) for domain in candidates]

    try:
        for domain, task in zip(candidates, tasks):
            if await task:
                console.print(f"[dim]Found website for {name}: {domain}[/dim]")
                return domain
        console.print(f"[dim]No responsive domain for {name}[/dim]")
        return None
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if owns_client:
            await client.aclose()
