"""Per-URL extraction failures."""

from typing import Optional


class ExtractionError(Exception):
    """Extraction of one URL failed. Reported per URL, never aborts a batch."""


class UnsupportedURLError(ExtractionError):
    """URL host is not a known ticketing platform."""


class FetchError(ExtractionError):
    """HTTP or network failure while fetching a page."""

    def __init__(self, url: str, status: Optional[int] = None, reason: Optional[str] = None):
        self.url = url
        self.status = status
        self.reason = reason or (str(status) if status else "unknown")
        super().__init__(f"fetch failed for {url}: {self.reason}")


class RenderError(ExtractionError):
    """Headless browser failed to navigate or crashed."""


class ExtractionParseError(ExtractionError):
    """Model or structured-markup output did not have the expected shape."""
