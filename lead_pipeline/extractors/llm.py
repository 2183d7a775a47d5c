"""Language-model extraction of Sympla event pages.

Sympla rarely embeds structured markup, so the page HTML is handed to a
chat-completion model with a strict JSON contract: four string fields,
"Não informado" for anything missing, and nothing but JSON in the reply.
"""

import json
import os
import re
from typing import Optional

import httpx
from pydantic import ValidationError
from rich.console import Console

from lead_pipeline.extractors.errors import ExtractionParseError
from lead_pipeline.models import NOT_INFORMED, EventRecord, ExtractedEvent, Platform

console = Console()

DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o-mini"

# Large enough to reach the "Sobre o produtor" section near the page bottom
HTML_PROMPT_LIMIT = 50_000
LLM_TIMEOUT = 60.0

SYSTEM_PROMPT = (
    "You are an expert at extracting event information from HTML pages. "
    "Always return valid JSON with the requested fields."
)

FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def get_llm_api_key() -> str:
    """Get the completion service API key from environment."""
    key = os.environ.get("OPENAI_API_KEY")
    if not key:
        raise ValueError("OPENAI_API_KEY environment variable not set")
    return key


def build_prompt(html: str, limit: int = HTML_PROMPT_LIMIT) -> str:
    """Prompt for the four-field extraction. HTML is cut to `limit` chars."""
    return f"""You are analyzing a Sympla event page. Sympla is a Brazilian event platform.

Extract the following fields from this HTML and return ONLY valid JSON:

- nome_evento: the event name/title (h1, title tag, or event name elements)
- data_evento: the event date, kept EXACTLY as written on the page, in its
  original language and format (e.g. "22 out - 2025", "15-16 nov 2024")
- local: the event location (venue name, city, state - combine if available)
- produtor: the company/organization that produces the event

FINDING THE PRODUCER (most important field, spend extra effort on it):
1. Sympla pages have a section titled "Sobre o produtor"
2. The producer name is the first <p> right after that heading,
   e.g. <h3>Sobre o produtor</h3> ... <p class="...">PRODUCER_NAME</p>
3. It is usually a company or institution ("Instituto", "Academia",
   "Câmara de Comércio", ...), not a person
4. NEVER use a venue or location name as the producer

Rules:
1. Expect Portuguese text and Brazilian date formats
2. If a field is not found, use "{NOT_INFORMED}"
3. Return JSON only, no commentary, no extra keys

Example output:
{{
  "nome_evento": "XIII Congresso Internacional IBDiC 2025",
  "data_evento": "22 out - 2025",
  "local": "São Paulo, SP",
  "produtor": "IBDiC"
}}

HTML content (first {limit} chars):
{html[:limit]}
"""


def strip_code_fences(text: str) -> str:
    """Remove a Markdown code fence (with or without a json tag) around a reply."""
    text = text.strip()
    match = FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def parse_event_json(content: str) -> ExtractedEvent:
    """Parse and validate a model reply. Raises ExtractionParseError."""
    cleaned = strip_code_fences(content or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExtractionParseError(f"model reply is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionParseError(f"model reply is a {type(data).__name__}, expected an object")

    try:
        return ExtractedEvent.model_validate(data)
    except ValidationError as e:
        raise ExtractionParseError(f"model reply has the wrong shape: {e.errors()[0]['msg']}") from e


class LLMExtractor:
    """Sends one completion request per page. No automatic retries."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = LLM_TIMEOUT,
    ):
        self.client = client
        self.api_key = api_key
        self.api_url = api_url or os.environ.get("LLM_API_URL", DEFAULT_API_URL)
        self.model = model or os.environ.get("LLM_MODEL", DEFAULT_MODEL)
        self.timeout = timeout

    async def complete(self, prompt: str) -> str:
        """Call the completion service and return the raw reply text."""
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.1,
            "max_tokens": 500,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key or get_llm_api_key()}",
        }

        try:
            response = await self.client.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise ExtractionParseError(f"completion service returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise ExtractionParseError(f"completion service unreachable: {type(e).__name__}") from e
        except json.JSONDecodeError as e:
            raise ExtractionParseError("completion service returned invalid JSON") from e

        content = None
        choices = data.get("choices") if isinstance(data, dict) else None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict):
                content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ExtractionParseError("empty reply from completion service")
        return content

    async def extract(self, html: str, url: str) -> EventRecord:
        """Extract the canonical record from raw page HTML."""
        content = await self.complete(build_prompt(html))
        console.print(f"[dim]Model reply: {content[:200]}[/dim]")
        return parse_event_json(content).to_record(url, Platform.SYMPLA)
