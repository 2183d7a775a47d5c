"""Page fetching: direct HTTP with browser headers, and a headless-render fallback.

Two tiers:
1. Fast path: httpx GET, success only on HTTP 200
2. Slow path: Playwright Firefox, for pages that block plain clients
"""

import random
from typing import Optional

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from rich.console import Console

from lead_pipeline.extractors.errors import RenderError

console = Console()

# Realistic Firefox User-Agents
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.7; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
]

ACCEPT_LANGUAGE = "pt-BR,pt;q=0.9,en;q=0.8"

DIRECT_TIMEOUT = 30.0  # seconds
NAVIGATION_TIMEOUT_MS = 45_000
SETTLE_MS = 5_000
TITLE_SELECTOR = 'h1, .event-title, [data-testid*="title"]'
TITLE_SELECTOR_TIMEOUT_MS = 10_000


def browser_headers() -> dict[str, str]:
    return {
        "User-Agent": random.choice(USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": ACCEPT_LANGUAGE,
        "Accept-Encoding": "gzip, deflate, br",
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


class FetchResult:
    """Result of a direct fetch with error details."""

    def __init__(
        self,
        html: Optional[str] = None,
        status: Optional[int] = None,
        error: Optional[str] = None,
    ):
        self.html = html
        self.status = status
        self.error = error  # "timeout", "connection", "500", ...

    @property
    def ok(self) -> bool:
        return self.status == 200 and self.html is not None


async def fetch_direct(
    client: httpx.AsyncClient,
    url: str,
    timeout: float = DIRECT_TIMEOUT,
) -> FetchResult:
    """Single GET with browser-like headers. Never raises on HTTP errors."""
    try:
        response = await client.get(
            url,
            headers=browser_headers(),
            timeout=timeout,
            follow_redirects=True,
        )
    except httpx.TimeoutException:
        return FetchResult(error="timeout")
    except httpx.ConnectError:
        return FetchResult(error="connection")
    except httpx.HTTPError as e:
        return FetchResult(error=type(e).__name__.lower())

    if response.status_code != 200:
        return FetchResult(status=response.status_code, error=str(response.status_code))
    return FetchResult(html=response.text, status=200)


async def render_page(
    url: str,
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
    settle_ms: int = SETTLE_MS,
    headless: bool = True,
) -> str:
    """Render a page in an isolated headless browser and return its HTML.

    Raises RenderError on navigation timeout or browser crash. The browser
    is closed on every exit path.
    """
    console.print(f"[cyan]Rendering with browser: {url[:60]}...[/cyan]")
    user_agent = random.choice(USER_AGENTS)

    try:
        async with async_playwright() as p:
            browser = await p.firefox.launch(headless=headless)
            try:
                context = await browser.new_context(
                    user_agent=user_agent,
                    viewport={"width": 1920, "height": 1080},
                    locale="pt-BR",
                    extra_http_headers={"Accept-Language": ACCEPT_LANGUAGE},
                )
                page = await context.new_page()

                await page.goto(url, wait_until="domcontentloaded", timeout=navigation_timeout_ms)

                # Let client-side rendering finish
                await page.wait_for_timeout(settle_ms)

                try:
                    await page.wait_for_selector(TITLE_SELECTOR, timeout=TITLE_SELECTOR_TIMEOUT_MS)
                except PlaywrightError:
                    console.print("[dim]Title selector not found, proceeding anyway[/dim]")

                html = await page.content()
            finally:
                await browser.close()
    except PlaywrightError as e:
        raise RenderError(f"browser render failed for {url}: {e}") from e

    console.print(f"[dim]Rendered {len(html)} chars[/dim]")
    return html
