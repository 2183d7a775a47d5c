"""Shared test fixtures and configuration."""

import json
from typing import Callable

import httpx
import pytest

from lead_pipeline.models import EventRecord, Platform
from lead_pipeline.store import JsonStore, LeadRepository, open_store

SYMPLA_URL = "https://www.sympla.com.br/evento/congresso-ibdic-2025/2890123"
EVENTBRITE_URL = "https://www.eventbrite.com.br/e/summit-de-inovacao-tickets-1234567890"

SYMPLA_HTML = """
<html><head><title>Congresso IBDiC 2025 - Sympla</title></head>
<body>
  <h1>XIII Congresso Internacional IBDiC 2025</h1>
  <p>22 out - 2025</p>
  <h3>Sobre o produtor</h3>
  <p class="producer">IBDiC</p>
</body></html>
"""

EVENTBRITE_JSON_LD_HTML = """
<html><head>
<script type="application/ld+json">
{
  "@context": "https://schema.org",
  "@graph": [
    {"@type": "WebPage", "name": "Summit de Inovação"},
    {
      "@type": "BusinessEvent",
      "name": "Summit de Inovação 2025",
      "startDate": "2025-11-15T09:00:00-03:00",
      "location": {
        "@type": "Place",
        "name": "Centro de Convenções Frei Caneca",
        "address": {"addressLocality": "São Paulo", "addressRegion": "SP"}
      },
      "organizer": [
        {"@type": "Organization", "name": "by Inova Hub", "url": "https://inovahub.com.br"},
        {"@type": "Organization", "name": "Second Org"}
      ]
    }
  ]
}
</script>
</head><body><h1>Summit de Inovação 2025</h1></body></html>
"""

EVENTBRITE_PLAIN_HTML = """
<html><body>
  <h1 data-automation="event-title">Workshop de Dados</h1>
  <div class="event-date">Saturday, March 8, 2025 10:00 AM</div>
  <h3>Location</h3>
  <div>Hotel Unique<br/>Av. Brigadeiro Luís Antônio, 4700</div>
  <section>
    <span>Organized by</span>
    <a href="https://www.eventbrite.com.br/o/dados-br-123">Dados BR Follow</a>
  </section>
</body></html>
"""


@pytest.fixture
def user_id() -> str:
    return "user-a"


@pytest.fixture
def other_user_id() -> str:
    return "user-b"


@pytest.fixture
def store() -> JsonStore:
    """In-memory store with atomic procedures installed."""
    return open_store()


@pytest.fixture
def repo(store: JsonStore) -> LeadRepository:
    return LeadRepository(store)


@pytest.fixture
def plain_repo() -> LeadRepository:
    """Repository over a store without procedures (step-by-step path only)."""
    return LeadRepository(JsonStore())


@pytest.fixture
def sample_record() -> EventRecord:
    return EventRecord(
        title="XIII Congresso Internacional IBDiC 2025",
        date="22 out - 2025",
        location="São Paulo, SP",
        organizer="ACME",
        source_url=SYMPLA_URL,
        platform=Platform.SYMPLA,
    )


@pytest.fixture
def make_record() -> Callable[..., EventRecord]:
    """Factory for records with distinct URLs."""

    def _make(url: str = SYMPLA_URL, organizer: str = "ACME", **fields) -> EventRecord:
        return EventRecord(
            title=fields.pop("title", "Evento"),
            organizer=organizer,
            source_url=url,
            platform=fields.pop("platform", Platform.SYMPLA),
            **fields,
        )

    return _make


@pytest.fixture
def mock_client() -> Callable[[Callable], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by `handler`."""

    def _make(handler: Callable) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _make


def completion_response(content: str) -> httpx.Response:
    """Chat-completion payload wrapping a model reply."""
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


def event_json(**fields) -> str:
    data = {
        "nome_evento": "X",
        "data_evento": "10 out - 2025",
        "local": "São Paulo, SP",
        "produtor": "ACME",
    }
    data.update(fields)
    return json.dumps(data, ensure_ascii=False)
