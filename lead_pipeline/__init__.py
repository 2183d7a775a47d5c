"""Event lead pipeline: ticketing-page extraction and organizer contact enrichment."""

__version__ = "0.1.0"
