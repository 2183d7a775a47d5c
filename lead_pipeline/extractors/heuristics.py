"""HTML heuristics for Eventbrite pages without structured data.

Each field is looked up through a prioritized list of selectors; the first
non-empty match wins. Anything not found becomes "Não informado".
"""

import re
from datetime import datetime
from typing import Optional

from bs4 import BeautifulSoup, Tag
from rich.console import Console

from lead_pipeline.extractors.structured import DISPLAY_DATE_FORMAT, clean_organizer_name
from lead_pipeline.models import NOT_INFORMED, EventRecord, Platform

console = Console()

TITLE_SELECTORS = [
    'h1[data-automation="event-title"]',
    ".eds-event-title",
    "h1",
]

DATE_SELECTORS = [
    ".eds-event-date-details",
    '[data-automation="event-date-time"]',
    ".event-date",
    '[class*="date"]',
]

LOCATION_SELECTORS = [
    '[data-automation="event-location"]',
    ".event-location",
]

# Words that mark a generic text block as a venue line
VENUE_WORDS = ("Hotel", "Centro", "Alameda", "Rua")

ORGANIZER_SELECTORS = [
    'a[href*="/o/"]',  # Organizer profile links
    ".eds-text-color--primary-brand",
    ".organizer-name",
    '[data-automation="organizer-name"]',
    ".event-organizer",
]

ORGANIZED_BY_RE = re.compile(r"Organized by", re.I)
ORGANIZED_BY_TAIL_RE = re.compile(r"Organized by\s+(.+?)(?:\n|$)", re.I)

# Venue lines are short; longer blocks are addresses bundled with extra text
MAX_LOCATION_LENGTH = 100

MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
    "|Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec"
)

# (pattern, strptime format applied to the joined groups)
DATE_PATTERNS = [
    (re.compile(rf"\b({MONTHS})\.?\s+(\d{{1,2}}),?\s+(\d{{4}})\b", re.I), "%B %d %Y"),
    (re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b"), "%Y %m %d"),
    (re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b"), "%m %d %Y"),
]


def _node_text(node: Tag) -> str:
    return node.get_text(separator="\n", strip=True)


def select_text(soup: BeautifulSoup, selectors: list[str]) -> str:
    """Text of the first selector that yields a non-empty element."""
    for selector in selectors:
        for node in soup.select(selector):
            text = _node_text(node)
            if text:
                return text
    return ""


def _parse_month_date(month: str, day: str, year: str) -> Optional[datetime]:
    for candidate, fmt in ((month, "%B %d %Y"), (month[:3], "%b %d %Y")):
        try:
            return datetime.strptime(f"{candidate} {day} {year}", fmt)
        except ValueError:
            continue
    return None


def parse_display_date(text: str) -> str:
    """Normalise a recognisable English date to DD/MM/YYYY; keep anything else as is."""
    text = " ".join(text.split())
    if not text:
        return NOT_INFORMED

    for pattern, fmt in DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        if fmt == "%B %d %Y":
            parsed = _parse_month_date(*match.groups())
        else:
            try:
                parsed = datetime.strptime(" ".join(match.groups()), fmt)
            except ValueError:
                parsed = None
        if parsed:
            return parsed.strftime(DISPLAY_DATE_FORMAT)

    return text


def shorten_location(text: str) -> str:
    """Trim long location blocks to their first non-empty line."""
    if len(text) <= MAX_LOCATION_LENGTH:
        return " ".join(text.split())
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    return lines[0] if lines else text


def find_location(soup: BeautifulSoup) -> str:
    # Element right after a "Location" heading
    for heading in soup.find_all("h3"):
        if "location" in heading.get_text().lower():
            sibling = heading.find_next_sibling()
            if sibling is not None:
                text = _node_text(sibling)
                if text:
                    return text

    text = select_text(soup, LOCATION_SELECTORS[:1])
    if text:
        return text

    for node in soup.select(".eds-text--left"):
        node_text = _node_text(node)
        if any(word in node_text for word in VENUE_WORDS):
            return node_text

    return select_text(soup, LOCATION_SELECTORS[1:])


def _organized_by_anchor(soup: BeautifulSoup) -> Optional[Tag]:
    """Most specific element whose text starts with "Organized by"."""
    anchors = []
    for string in soup.find_all(string=ORGANIZED_BY_RE):
        element = string.parent
        if isinstance(element, Tag) and _node_text(element).lower().startswith("organized by"):
            anchors.append(element)
    return anchors[-1] if anchors else None


def find_organizer(soup: BeautifulSoup) -> str:
    anchor = _organized_by_anchor(soup)
    if anchor is not None:
        parent = anchor.parent if isinstance(anchor.parent, Tag) else anchor

        link = parent.find("a")
        if link is not None and _node_text(link):
            return _node_text(link)

        sibling = anchor.find_next_sibling()
        if sibling is not None:
            if sibling.name != "a":
                inner = sibling.find("a")
                if inner is not None and _node_text(inner):
                    return _node_text(inner)
            if _node_text(sibling):
                return _node_text(sibling)

        # Name in the same text, e.g. <p>Organized by ACME</p>
        match = ORGANIZED_BY_TAIL_RE.search(_node_text(parent))
        if match:
            return match.group(1).strip()

    return select_text(soup, ORGANIZER_SELECTORS)


def extract_heuristics(html: str, url: str) -> EventRecord:
    """Extract an Eventbrite event record by selector and text-anchor matching."""
    soup = BeautifulSoup(html, "lxml")

    for tag in soup.find_all(["script", "style", "noscript"]):
        tag.decompose()

    title = select_text(soup, TITLE_SELECTORS)
    date_text = select_text(soup, DATE_SELECTORS)
    location = find_location(soup)
    organizer = clean_organizer_name(find_organizer(soup))

    record = EventRecord(
        title=title,
        date=parse_display_date(date_text),
        location=shorten_location(location) if location else NOT_INFORMED,
        organizer=organizer,
        source_url=url,
        platform=Platform.EVENTBRITE,
    )
    console.print(
        f"[dim]Heuristics: title={record.title[:40]!r} organizer={record.organizer!r}[/dim]"
    )
    return record
