"""Extraction orchestrator: URL -> platform chain -> canonical event record.

Sympla:     direct fetch -> headless render, then language-model parse
Eventbrite: direct fetch, then JSON-LD -> HTML heuristics
"""

from typing import Awaitable, Callable, Optional

import httpx
from rich.console import Console

from lead_pipeline.extractors.chain import Attempt, Step, run_chain
from lead_pipeline.extractors.classify import classify_url
from lead_pipeline.extractors.errors import FetchError, UnsupportedURLError
from lead_pipeline.extractors.fetch import DIRECT_TIMEOUT, fetch_direct, render_page
from lead_pipeline.extractors.heuristics import extract_heuristics
from lead_pipeline.extractors.llm import LLMExtractor
from lead_pipeline.extractors.structured import extract_structured_event
from lead_pipeline.models import EventRecord, Platform

console = Console()

Renderer = Callable[[str], Awaitable[str]]


class EventExtractor:
    """Runs the platform-specific extraction chain for one URL at a time.

    The HTTP client, language-model extractor and renderer are injected so
    each tier can be replaced in tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        llm: Optional[LLMExtractor] = None,
        renderer: Renderer = render_page,
        timeout: float = DIRECT_TIMEOUT,
    ):
        self.client = client
        self.llm = llm or LLMExtractor(client)
        self.renderer = renderer
        self.timeout = timeout
        self.last_attempts: list[Attempt] = []

    # -- HTML tiers --------------------------------------------------------

    async def fetch_html(self, url: str) -> str:
        """Direct fetch; raises FetchError on anything but HTTP 200."""
        result = await fetch_direct(self.client, url, timeout=self.timeout)
        if not result.ok:
            console.print(
                f"[yellow]Direct fetch failed ({result.error}) for {url[:60]}[/yellow]"
            )
            raise FetchError(url, status=result.status, reason=result.error)
        console.print(f"[dim]Direct fetch successful: {url[:60]}[/dim]")
        return result.html

    async def render_html(self, url: str) -> str:
        return await self.renderer(url)

    def sympla_html_steps(self) -> list[Step]:
        return [
            Step("direct", self.fetch_html),
            Step("render", self.render_html, fatal=True),
        ]

    # -- parsers -----------------------------------------------------------

    async def parse_structured(self, html: str, url: str) -> Optional[EventRecord]:
        return extract_structured_event(html, url)

    async def parse_heuristics(self, html: str, url: str) -> EventRecord:
        return extract_heuristics(html, url)

    def eventbrite_parse_steps(self) -> list[Step]:
        return [
            Step("structured", self.parse_structured, fatal=True),
            Step("heuristics", self.parse_heuristics, fatal=True),
        ]

    # -- chains ------------------------------------------------------------

    async def extract_sympla(self, url: str) -> EventRecord:
        fetched = await run_chain(self.sympla_html_steps(), url)
        self.last_attempts.extend(fetched.attempts)

        record = await self.llm.extract(fetched.value, url)
        self.last_attempts.append(Attempt("llm", value=record))
        return record

    async def extract_eventbrite(self, url: str) -> EventRecord:
        html = await self.fetch_html(url)
        self.last_attempts.append(Attempt("direct", value=html))

        parsed = await run_chain(self.eventbrite_parse_steps(), html, url)
        self.last_attempts.extend(parsed.attempts)
        return parsed.value

    async def extract(self, url: str) -> EventRecord:
        """Extract the canonical record for a URL. Raises ExtractionError."""
        self.last_attempts = []
        platform = classify_url(url)

        if platform == Platform.SYMPLA:
            record = await self.extract_sympla(url)
        elif platform == Platform.EVENTBRITE:
            record = await self.extract_eventbrite(url)
        else:
            raise UnsupportedURLError(f"Invalid URL (must be Sympla or Eventbrite): {url}")

        tiers = "+".join(a.step for a in self.last_attempts if a.ok)
        console.print(
            f"[green]Extracted:[/green] {record.title[:50]} "
            f"[dim](organizer: {record.organizer}, via {tiers})[/dim]"
        )
        return record
