"""Tests for strategy fallback in the extraction orchestrator."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from mediascout.core.cancellation import CancellationToken
from mediascout.core.config_schemas import ExtractionSettings
from mediascout.core.exceptions import ContextNotFoundError, NetworkError
from mediascout.core.models import SearchItem
from mediascout.core.network import FetchResponse
from mediascout.core.orchestrator import (
    HTML_PREFETCH,
    MODULE_ASYNC,
    SECONDARY_FALLBACK,
    ExtractionOrchestrator,
    OutcomeStatus,
    SearchFilters,
    relevance_score,
)


SEARCH_ITEMS = [
    {"title": "Something Frieren", "image": "https://img.example/2.jpg", "href": "/anime/2"},
    {"title": "Frieren: Beyond Journey's End", "image": "https://img.example/1.jpg", "href": "/anime/1"},
    {"title": "Unrelated", "image": "https://img.example/3.jpg", "href": "/anime/3"},
    {"title": "Frieren: Beyond Journey's End", "image": "https://img.example/1.jpg", "href": "/anime/1"},
]

PARSING_SCRIPT = '''
import json

def searchResults(html):
    return json.loads(html)

def extractDetails(html):
    return json.loads(html)["details"]

def extractEpisodes(html):
    return json.loads(html)["episodes"]

def extractStreamUrl(html):
    return json.loads(html)["stream"]
'''

ASYNC_FETCHING_SCRIPT = '''
async def searchResults(keyword):
    response = await fetchv2("https://source.example/api?q=" + keyword)
    return response.text()
'''

ASYNC_EMPTY_THEN_HTML_SCRIPT = '''
import json

async def searchResults(query):
    if not query.startswith("["):
        return []
    return json.loads(query)
'''

ASYNC_HANGING_SCRIPT = '''
import asyncio
import json

async def searchResults(query):
    if not query.startswith("["):
        await asyncio.Event().wait()
    return json.loads(query)
'''

ASYNC_STREAM_SCRIPT = '''
import re

async def extractStreamUrl(value):
    match = re.search(r'file:\\s*"([^"]+)"', value)
    return match.group(1) if match else None
'''

RECORDING_STREAM_SCRIPT = '''
received = []

async def extractStreamUrl(value):
    received.append(value)
    return "https://cdn.example/a.mp4"
'''

DETAILS_ONLY_SCRIPT = '''
def extractDetails(html):
    return [{"description": "A mage outlives her party.", "aliases": ["Sousou no Frieren"], "airdate": "2023"}]

def extractEpisodes(html):
    raise RuntimeError("episode list markup changed")
'''


def page(**sections):
    return json.dumps(sections)


class TestSearch:

    async def test_html_prefetch(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = json.dumps(SEARCH_ITEMS)

        outcome = await orchestrator.search("  frieren   beyond ", make_metadata())

        http_client.fetch_text.assert_awaited_once_with("https://source.example/search?q=frieren%20beyond")
        assert outcome.status is OutcomeStatus.SUCCESS
        assert outcome.strategy == HTML_PREFETCH
        assert outcome.value[0].title == "Frieren: Beyond Journey's End"
        assert outcome.value[0].image_url == "https://img.example/1.jpg"
        assert len(outcome.value) == 3

    async def test_module_async_fetches_itself(self, orchestrator, http_client, load_script, make_metadata):
        load_script(ASYNC_FETCHING_SCRIPT)
        http_client.request.return_value = FetchResponse(
            "https://source.example/api?q=frieren", 200, {}, json.dumps(SEARCH_ITEMS[:1]).encode()
        )

        outcome = await orchestrator.search("frieren", make_metadata(asyncJS=True))

        assert outcome.strategy == MODULE_ASYNC
        assert [item.href for item in outcome.value] == ["/anime/2"]
        http_client.fetch_text.assert_not_awaited()

    async def test_falls_back_to_html_when_async_is_empty(self, orchestrator, http_client, load_script, make_metadata):
        load_script(ASYNC_EMPTY_THEN_HTML_SCRIPT)
        http_client.fetch_text.return_value = json.dumps(SEARCH_ITEMS)

        outcome = await orchestrator.search("frieren", make_metadata(asyncJS=True))

        assert outcome.is_success
        assert outcome.strategy == HTML_PREFETCH
        assert outcome.errors == [f"{MODULE_ASYNC}: no results"]

    async def test_falls_back_after_timeout(self, sandbox, http_client, load_script, make_metadata):
        orchestrator = ExtractionOrchestrator(sandbox, http_client, ExtractionSettings(search_timeout=0.1))
        load_script(ASYNC_HANGING_SCRIPT)
        http_client.fetch_text.return_value = json.dumps(SEARCH_ITEMS)

        outcome = await orchestrator.search("frieren", make_metadata(asyncJS=True))

        assert outcome.strategy == HTML_PREFETCH
        assert outcome.errors[0].startswith(f"{MODULE_ASYNC}:")
        assert "timed out" in outcome.errors[0]

    async def test_empty_keyword(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)

        outcome = await orchestrator.search("   ", make_metadata())

        assert outcome.is_empty
        assert outcome.value == []
        http_client.fetch_text.assert_not_awaited()

    async def test_unloaded_module_raises(self, orchestrator, make_metadata):
        with pytest.raises(ContextNotFoundError):
            await orchestrator.search("frieren", make_metadata())

    async def test_no_applicable_strategy(self, orchestrator, load_script, make_metadata):
        load_script(PARSING_SCRIPT)

        outcome = await orchestrator.search("frieren", make_metadata(searchBaseUrl=None))

        assert outcome.is_empty
        assert outcome.errors == ["no applicable strategy"]

    async def test_network_failure_is_empty_outcome(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.side_effect = NetworkError("HTTP 503 error", status_code=503)

        outcome = await orchestrator.search("frieren", make_metadata())

        assert outcome.is_empty
        assert outcome.errors == [f"{HTML_PREFETCH}: HTTP 503 error"]

    async def test_malformed_output_is_empty_outcome(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = "<html>not json</html>"

        outcome = await orchestrator.search("frieren", make_metadata())

        assert outcome.is_empty
        assert "raised JSONDecodeError" in outcome.errors[0]

    async def test_invalid_items_dropped(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = json.dumps([
            {"title": "Frieren", "image": "i.jpg", "href": "/a"},
            {"title": "", "image": "i.jpg", "href": "/b"},
            {"title": "No link", "image": "i.jpg"},
            "not an object",
        ])

        outcome = await orchestrator.search("frieren", make_metadata())

        assert [item.title for item in outcome.value] == ["Frieren"]

    async def test_results_are_cached(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = json.dumps(SEARCH_ITEMS)
        metadata = make_metadata()

        first = await orchestrator.search("frieren", metadata)
        second = await orchestrator.search("frieren", metadata, filters=SearchFilters(max_results=1))

        http_client.fetch_text.assert_awaited_once()
        assert not first.from_cache
        assert second.from_cache
        assert len(second.value) == 1

        assert orchestrator.clear_cache("test-source") == 1
        await orchestrator.search("frieren", metadata)
        assert http_client.fetch_text.await_count == 2

    async def test_cancelled_before_start(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        token = CancellationToken()
        token.cancel("user")

        outcome = await orchestrator.search("frieren", make_metadata(), token=token)

        assert outcome.is_cancelled
        assert outcome.value == []
        http_client.fetch_text.assert_not_awaited()

    async def test_cancelled_mid_call(self, orchestrator, http_client, load_script, make_metadata):
        load_script(ASYNC_HANGING_SCRIPT)
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)

        outcome = await orchestrator.search("frieren", make_metadata(asyncJS=True), token=token)

        assert outcome.is_cancelled
        assert outcome.strategy == MODULE_ASYNC
        http_client.fetch_text.assert_not_awaited()


class TestSearchFilters:

    def test_relevance_score(self):
        assert relevance_score("Frieren: Beyond", "frieren") == 160
        assert relevance_score("Something Frieren", "frieren") == 110
        assert relevance_score("Unrelated", "frieren") == 0

    def test_apply(self):
        items = [SearchItem(title=r["title"], imageUrl=r["image"], href=r["href"]) for r in SEARCH_ITEMS]
        results = SearchFilters(max_results=2).apply(items, "frieren")
        assert [item.href for item in results] == ["/anime/1", "/anime/2"]

        unsorted = SearchFilters(sort_by_relevance=False, remove_duplicates=False, max_results=None).apply(items, "frieren")
        assert len(unsorted) == 4

        long_titles = SearchFilters(min_title_length=10).apply(items, "")
        assert "Unrelated" not in [item.title for item in long_titles]


class TestDetails:

    async def test_partial_failure_keeps_details(self, orchestrator, http_client, load_script, make_metadata):
        load_script(DETAILS_ONLY_SCRIPT)

        outcome = await orchestrator.details("/anime/1", make_metadata())

        http_client.fetch_text.assert_awaited_once_with("https://source.example/anime/1")
        assert outcome.is_success
        assert outcome.value.details[0].aliases == "Sousou no Frieren"
        assert outcome.value.episodes == []
        assert outcome.strategy == f"details={HTML_PREFETCH}"
        assert any(error.startswith(f"episodes {HTML_PREFETCH}:") for error in outcome.errors)

    async def test_details_and_episodes(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = page(
            details=[{"description": "Synopsis", "airdate": "Sep 29, 2023"}],
            episodes=[{"number": n, "href": f"/ep/{n}"} for n in range(1, 6)],
        )

        outcome = await orchestrator.details("https://source.example/anime/1", make_metadata())

        assert outcome.is_success
        assert [e.number for e in outcome.value.episodes] == [1, 2, 3, 4, 5]
        assert outcome.value.details[0].parsed_airdate.year == 2023
        http_client.fetch_text.assert_awaited_once()

    async def test_malformed_episodes_skipped_consistently(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = page(episodes=[
            {"number": 1, "href": "/ep/1"},
            {"number": "special", "href": "/ep/sp"},
            {"number": 3},
            {"number": "4 - Finale", "href": "/ep/4"},
            None,
        ])
        metadata = make_metadata()

        first = await orchestrator.episodes("/anime/1", metadata)
        orchestrator.clear_cache()
        second = await orchestrator.episodes("/anime/1", metadata)

        assert [e.number for e in first.value] == [1, 4]
        assert first.value == second.value

    async def test_both_halves_empty(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = page(details=[], episodes=[])

        outcome = await orchestrator.details("/anime/1", make_metadata())

        assert outcome.is_empty
        assert outcome.value.is_empty
        assert outcome.strategy is None

    async def test_media_details_only(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = page(details={"description": "Single object"})

        outcome = await orchestrator.media_details("/anime/1", make_metadata())

        assert outcome.is_success
        assert outcome.value[0].description == "Single object"

    async def test_unloaded_module_raises(self, orchestrator, make_metadata):
        with pytest.raises(ContextNotFoundError):
            await orchestrator.details("/anime/1", make_metadata())


class TestStreams:

    async def test_html_prefetch_envelope(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = page(stream={
            "streams": [{"title": "SUB", "streamUrl": "https://cdn.example/sub.m3u8", "headers": {"Referer": "https://source.example/"}}],
            "subtitles": ["https://cdn.example/en.vtt", "relative.vtt"],
        })

        outcome = await orchestrator.streams("/watch/1", make_metadata())

        assert outcome.strategy == HTML_PREFETCH
        assert outcome.value.sources[0].headers == {"Referer": "https://source.example/"}
        assert outcome.value.subtitles == ["https://cdn.example/en.vtt"]

    async def test_async_falls_back_to_secondary(self, orchestrator, http_client, load_script, make_metadata):
        load_script(ASYNC_STREAM_SCRIPT)
        http_client.fetch_text.return_value = '<script>player({file: "https://cdn.example/master.m3u8"})</script>'

        outcome = await orchestrator.streams("/watch/1", make_metadata(asyncJS=True))

        assert outcome.strategy == SECONDARY_FALLBACK
        assert outcome.value.streams == ["https://cdn.example/master.m3u8"]
        assert outcome.value.sources is None
        assert outcome.errors[0].startswith(f"{MODULE_ASYNC}:")

    async def test_stream_async_only_module_gets_html(self, orchestrator, sandbox, http_client, load_script, make_metadata):
        load_script(RECORDING_STREAM_SCRIPT)
        http_client.fetch_text.return_value = "<div id='player'></div>"

        outcome = await orchestrator.streams("/watch/1", make_metadata(streamAsyncJS=True))

        assert outcome.strategy == HTML_PREFETCH
        assert outcome.errors == []
        assert sandbox.get_context("test-source").namespace["received"] == ["<div id='player'></div>"]
        http_client.fetch_text.assert_awaited_once_with("https://source.example/watch/1")

    async def test_only_relative_urls_is_empty(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text.return_value = page(stream="/relative/master.m3u8")

        outcome = await orchestrator.streams("/watch/1", make_metadata())

        assert outcome.is_empty
        assert outcome.value.is_empty

    async def test_missing_function(self, orchestrator, load_script, make_metadata):
        load_script(DETAILS_ONLY_SCRIPT)

        outcome = await orchestrator.streams("/watch/1", make_metadata())

        assert outcome.is_empty
        assert "extractStreamUrl not found" in outcome.errors[0]

    async def test_streams_cached(self, orchestrator, http_client, load_script, make_metadata):
        load_script(PARSING_SCRIPT)
        http_client.fetch_text = AsyncMock(return_value=page(stream="https://cdn.example/a.mp4"))
        metadata = make_metadata()

        await orchestrator.streams("/watch/1", metadata)
        cached = await orchestrator.streams("/watch/1", metadata)

        assert cached.from_cache
        assert cached.value.streams == ["https://cdn.example/a.mp4"]
        http_client.fetch_text.assert_awaited_once()
