"""Decide which platform extractor applies to a URL."""

import re
from typing import Optional
from urllib.parse import urlparse

from lead_pipeline.models import Platform

SYMPLA_DOMAINS = ("sympla.com.br",)

# eventbrite.com, eventbrite.com.br, eventbrite.co.uk, ...
EVENTBRITE_HOST_RE = re.compile(r"(?:^|\.)eventbrite\.(?:com|co|com\.[a-z]{2}|co\.[a-z]{2}|[a-z]{2})$")

EVENT_ID_RE = re.compile(r"/e/[^/]*-(\d+)", re.I)


def _host(url: str) -> Optional[str]:
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https"):
        return None
    return (parsed.hostname or "").lower() or None


def _matches_suffix(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def is_sympla_url(url: str) -> bool:
    host = _host(url)
    return bool(host) and any(_matches_suffix(host, d) for d in SYMPLA_DOMAINS)


def is_eventbrite_url(url: str) -> bool:
    host = _host(url)
    return bool(host) and bool(EVENTBRITE_HOST_RE.search(host))


def classify_url(url: str) -> Platform:
    """Map a URL to its ticketing platform by hostname suffix."""
    if is_sympla_url(url):
        return Platform.SYMPLA
    if is_eventbrite_url(url):
        return Platform.EVENTBRITE
    return Platform.UNRECOGNIZED


def eventbrite_event_id(url: str) -> Optional[str]:
    """Numeric event id from an /e/<slug>-<id> Eventbrite path."""
    if not is_eventbrite_url(url):
        return None
    match = EVENT_ID_RE.search(urlparse(url).path)
    return match.group(1) if match else None
