"""URL -> event record extraction engine.

This package:
1. Classifies a URL by ticketing platform (Sympla, Eventbrite)
2. Fetches the page HTML (direct HTTP, headless-render fallback)
3. Extracts event + organizer data using ordered strategies:
   - Language-model extraction (Sympla)
   - Schema.org JSON-LD, then HTML heuristics (Eventbrite)
"""

from lead_pipeline.extractors.chain import Attempt, ChainResult, Step, run_chain
from lead_pipeline.extractors.classify import classify_url, eventbrite_event_id
from lead_pipeline.extractors.errors import (
    ExtractionError,
    ExtractionParseError,
    FetchError,
    RenderError,
    UnsupportedURLError,
)
from lead_pipeline.extractors.fetch import FetchResult, fetch_direct, render_page
from lead_pipeline.extractors.heuristics import extract_heuristics
from lead_pipeline.extractors.llm import LLMExtractor, parse_event_json, strip_code_fences
from lead_pipeline.extractors.pipeline import EventExtractor
from lead_pipeline.extractors.structured import extract_structured_event

__all__ = [
    "Attempt",
    "ChainResult",
    "Step",
    "run_chain",
    "classify_url",
    "eventbrite_event_id",
    "ExtractionError",
    "ExtractionParseError",
    "FetchError",
    "RenderError",
    "UnsupportedURLError",
    "FetchResult",
    "fetch_direct",
    "render_page",
    "extract_heuristics",
    "LLMExtractor",
    "parse_event_json",
    "strip_code_fences",
    "EventExtractor",
    "extract_structured_event",
]
