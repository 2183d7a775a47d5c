"""Extract event data from Schema.org JSON-LD blocks (Eventbrite)."""

import json
import re
from datetime import datetime
from typing import Any, Optional

from bs4 import BeautifulSoup
from pydantic import ValidationError
from rich.console import Console

from lead_pipeline.extractors.errors import ExtractionParseError
from lead_pipeline.models import NOT_INFORMED, EventRecord, Platform

console = Console()

EVENT_TYPES = {
    "Event",
    "BusinessEvent",
    "EducationEvent",
    "SocialEvent",
    "MusicEvent",
    "Festival",
    "ExhibitionEvent",
    "SportsEvent",
    "TheaterEvent",
}

DISPLAY_DATE_FORMAT = "%d/%m/%Y"

ORGANIZER_PREFIX_RE = re.compile(r"^(?:by|organized by|organizado por)\s+", re.I)
ORGANIZER_SUFFIX_RE = re.compile(r"\s+presents?$", re.I)
FOLLOW_SUFFIX_RE = re.compile(r"\s*Follow$")


def clean_organizer_name(name: Optional[str]) -> Optional[str]:
    """Strip "by ...", "organized by ...", trailing "presents" and "Follow"."""
    if not name:
        return name
    name = " ".join(name.split())
    name = ORGANIZER_PREFIX_RE.sub("", name)
    name = FOLLOW_SUFFIX_RE.sub("", name)
    name = ORGANIZER_SUFFIX_RE.sub("", name)
    return name.strip()


def format_start_date(value: Any) -> str:
    """ISO start date to DD/MM/YYYY in the event's own offset; raw text otherwise."""
    if not isinstance(value, str) or not value.strip():
        return NOT_INFORMED
    try:
        return datetime.fromisoformat(value.strip()).strftime(DISPLAY_DATE_FORMAT)
    except ValueError:
        return value.strip()


def extract_json_ld(soup: BeautifulSoup) -> list[dict]:
    """Extract all JSON-LD blocks from page, flattening lists and @graph."""
    json_ld_blocks = []

    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or "")
        except (json.JSONDecodeError, TypeError):
            console.print("[dim]Skipping unparsable JSON-LD block[/dim]")
            continue

        items = data if isinstance(data, list) else [data]
        for item in items:
            if not isinstance(item, dict):
                continue
            json_ld_blocks.append(item)
            graph = item.get("@graph")
            if isinstance(graph, list):
                json_ld_blocks.extend(g for g in graph if isinstance(g, dict))

    return json_ld_blocks


def is_event_block(block: dict) -> bool:
    block_type = block.get("@type", "")
    if isinstance(block_type, list):
        return any(t in EVENT_TYPES for t in block_type)
    return block_type in EVENT_TYPES


def find_event_block(blocks: list[dict]) -> Optional[dict]:
    for block in blocks:
        if is_event_block(block):
            return block
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_location(location: Any) -> str:
    """Prefer a named venue; append city/region only if the name lacks them."""
    if isinstance(location, list):
        location = location[0] if location else None
    if isinstance(location, str):
        return location.strip() or NOT_INFORMED
    if not isinstance(location, dict):
        return NOT_INFORMED

    address = location.get("address")
    venue = _text(location.get("name"))

    if venue:
        if isinstance(address, dict):
            locality = _text(address.get("addressLocality"))
            region = _text(address.get("addressRegion"))
            if locality and locality.lower() not in venue.lower():
                venue += f", {locality}"
                if region and region != locality:
                    venue += f", {region}"
        return venue

    if isinstance(address, str):
        return address.strip() or NOT_INFORMED
    if isinstance(address, dict):
        parts = [
            _text(address.get("streetAddress")),
            _text(address.get("addressLocality")),
            _text(address.get("addressRegion")),
        ]
        joined = ", ".join(p for p in parts if p)
        return joined or NOT_INFORMED

    return NOT_INFORMED


def parse_organizer(organizer: Any) -> tuple[str, Optional[str]]:
    """Organizer name and optional site; arrays use their first element."""
    if isinstance(organizer, list):
        organizer = organizer[0] if organizer else None

    name: Optional[str] = None
    website: Optional[str] = None
    if isinstance(organizer, str):
        name = organizer
    elif isinstance(organizer, dict):
        name = _text(organizer.get("name")) or None
        website = _text(organizer.get("url")) or None
        same_as = organizer.get("sameAs")
        if not website and isinstance(same_as, list) and same_as:
            website = _text(same_as[0]) or None
        elif not website and isinstance(same_as, str):
            website = same_as.strip() or None

    return clean_organizer_name(name) or NOT_INFORMED, website


def parse_event_block(block: dict, url: str) -> EventRecord:
    """Map a Schema.org Event block to the canonical record."""
    organizer, website = parse_organizer(block.get("organizer"))
    try:
        return EventRecord(
            title=block.get("name"),
            date=format_start_date(block.get("startDate")),
            location=parse_location(block.get("location")),
            organizer=organizer,
            organizer_website=website,
            source_url=url,
            platform=Platform.EVENTBRITE,
        )
    except ValidationError as e:
        raise ExtractionParseError(f"structured data has the wrong shape: {e.errors()[0]['msg']}") from e


def extract_structured_event(html: str, url: str) -> Optional[EventRecord]:
    """Event record from embedded JSON-LD, or None when the page has none."""
    soup = BeautifulSoup(html, "lxml")
    block = find_event_block(extract_json_ld(soup))
    if block is None:
        return None
    console.print("[dim]Using JSON-LD structured data[/dim]")
    return parse_event_block(block, url)
