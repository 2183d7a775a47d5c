"""Tests for fallback chains and the extraction orchestrator."""

import asyncio

import httpx
import pytest

from conftest import (
    EVENTBRITE_JSON_LD_HTML,
    EVENTBRITE_PLAIN_HTML,
    EVENTBRITE_URL,
    SYMPLA_HTML,
    SYMPLA_URL,
    completion_response,
    event_json,
)
from lead_pipeline.extractors import (
    EventExtractor,
    ExtractionError,
    FetchError,
    LLMExtractor,
    RenderError,
    Step,
    UnsupportedURLError,
    run_chain,
)

LLM_URL = "https://llm.test/v1/chat/completions"


class TestRunChain:
    """Tests for ordered strategy execution."""

    def test_first_success_wins(self):
        calls = []

        async def failing(x):
            calls.append("a")
            raise ExtractionError("nope")

        async def empty(x):
            calls.append("b")
            return None

        async def working(x):
            calls.append("c")
            return x * 2

        async def never(x):
            calls.append("d")
            return x

        result = asyncio.run(run_chain(
            [Step("a", failing), Step("b", empty), Step("c", working), Step("d", never)], 21,
        ))

        assert result.value == 42
        assert result.winner == "c"
        assert calls == ["a", "b", "c"]
        assert [a.ok for a in result.attempts] == [False, False, True]

    def test_fatal_step_stops_chain(self):
        calls = []

        async def fatal(x):
            calls.append("fatal")
            raise RenderError("browser crashed")

        async def later(x):
            calls.append("later")
            return x

        with pytest.raises(RenderError):
            asyncio.run(run_chain([Step("fatal", fatal, fatal=True), Step("later", later)], 1))
        assert calls == ["fatal"]

    def test_all_fail_raises_last_error(self):
        async def first(x):
            raise FetchError("https://x.test", status=500)

        async def second(x):
            raise ExtractionError("second failed")

        with pytest.raises(ExtractionError, match="second failed"):
            asyncio.run(run_chain([Step("first", first), Step("second", second)], 1))

    def test_unexpected_errors_propagate(self):
        async def buggy(x):
            raise KeyError("bug")

        with pytest.raises(KeyError):
            asyncio.run(run_chain([Step("buggy", buggy)], 1))


def make_extractor(client: httpx.AsyncClient, calls: list, render_html: str = SYMPLA_HTML, render_error=None):
    async def renderer(url: str) -> str:
        calls.append("render")
        if render_error:
            raise render_error
        return render_html

    llm = LLMExtractor(client, api_key="sk-test", api_url=LLM_URL)
    return EventExtractor(client, llm=llm, renderer=renderer)


class TestSymplaChain:
    def test_direct_success_goes_to_model(self, mock_client):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url == LLM_URL:
                calls.append("llm")
                return completion_response(event_json())
            calls.append("direct")
            return httpx.Response(200, text=SYMPLA_HTML)

        async def run():
            async with mock_client(handler) as client:
                return await make_extractor(client, calls).extract(SYMPLA_URL)

        record = asyncio.run(run())

        assert calls == ["direct", "llm"]
        assert record.title == "X"
        assert record.organizer == "ACME"

    def test_http_500_renders_before_model(self, mock_client):
        """Tiers run in order: direct fetch, browser render, then model."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url == LLM_URL:
                calls.append("llm")
                assert "Congresso IBDiC 2025 - Sympla" in request.content.decode()
                return completion_response(event_json(nome_evento="Rendered"))
            calls.append("direct")
            return httpx.Response(500)

        async def run():
            async with mock_client(handler) as client:
                extractor = make_extractor(client, calls)
                record = await extractor.extract(SYMPLA_URL)
                return record, extractor.last_attempts

        record, attempts = asyncio.run(run())

        assert calls == ["direct", "render", "llm"]
        assert record.title == "Rendered"
        assert [a.step for a in attempts] == ["direct", "render", "llm"]
        assert isinstance(attempts[0].error, FetchError)
        assert attempts[0].error.status == 500

    def test_network_error_renders(self, mock_client):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url == LLM_URL:
                calls.append("llm")
                return completion_response(event_json())
            calls.append("direct")
            raise httpx.ConnectError("refused", request=request)

        async def run():
            async with mock_client(handler) as client:
                return await make_extractor(client, calls).extract(SYMPLA_URL)

        asyncio.run(run())
        assert calls == ["direct", "render", "llm"]

    def test_render_failure_is_fatal(self, mock_client):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url == LLM_URL:
                calls.append("llm")
            else:
                calls.append("direct")
            return httpx.Response(503)

        async def run():
            async with mock_client(handler) as client:
                extractor = make_extractor(client, calls, render_error=RenderError("navigation timeout"))
                await extractor.extract(SYMPLA_URL)

        with pytest.raises(RenderError):
            asyncio.run(run())
        assert calls == ["direct", "render"]


class TestEventbriteChain:
    def test_json_ld_preferred(self, mock_client):
        calls = []

        async def run():
            handler = lambda request: httpx.Response(200, text=EVENTBRITE_JSON_LD_HTML)
            async with mock_client(handler) as client:
                extractor = make_extractor(client, calls)
                record = await extractor.extract(EVENTBRITE_URL)
                return record, extractor.last_attempts

        record, attempts = asyncio.run(run())

        assert record.organizer == "Inova Hub"
        assert [a.step for a in attempts] == ["direct", "structured"]
        assert calls == []

    def test_heuristics_without_json_ld(self, mock_client):
        calls = []

        async def run():
            handler = lambda request: httpx.Response(200, text=EVENTBRITE_PLAIN_HTML)
            async with mock_client(handler) as client:
                extractor = make_extractor(client, calls)
                record = await extractor.extract(EVENTBRITE_URL)
                return record, extractor.last_attempts

        record, attempts = asyncio.run(run())

        assert record.organizer == "Dados BR"
        assert [a.step for a in attempts] == ["direct", "structured", "heuristics"]

    def test_fetch_failure_is_fatal(self, mock_client):
        """Eventbrite has no render fallback."""
        calls = []

        async def run():
            async with mock_client(lambda request: httpx.Response(404)) as client:
                await make_extractor(client, calls).extract(EVENTBRITE_URL)

        with pytest.raises(FetchError):
            asyncio.run(run())
        assert calls == []


def test_unrecognized_url_rejected(mock_client):
    async def run():
        async with mock_client(lambda request: httpx.Response(200)) as client:
            await make_extractor(client, []).extract("https://example.com/event/1")

    with pytest.raises(UnsupportedURLError, match="must be Sympla or Eventbrite"):
        asyncio.run(run())
