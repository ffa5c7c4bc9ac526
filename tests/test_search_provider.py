from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from deepreport.errors import QuotaExhaustedError, RateLimitError, UpstreamError
from deepreport.tools import brave_search, jina_search, search_provider
from deepreport.tools.brave_search import SearchResult
from deepreport.tools.jina_search import _parse_jina_search_response


def _async_client_returning(response: httpx.Response) -> tuple[MagicMock, MagicMock]:
    client = MagicMock()
    client.get = AsyncMock(return_value=response)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=client)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=ctx), client


def _brave_settings(mock_settings):
    mock_settings.brave_api_key = "test-key"
    mock_settings.search_timeout_seconds = 5


class TestBraveSearch:
    @pytest.mark.asyncio
    async def test_maps_results_and_freshness(self):
        payload = {
            "web": {
                "results": [
                    {"title": "Grid batteries", "url": "https://a.com/1", "description": "Lithium storage"},
                    {"title": "Pumped hydro", "url": "https://b.org/2", "description": "", "extra_snippets": ["x", "y"]},
                ]
            }
        }
        factory, client = _async_client_returning(httpx.Response(200, json=payload))

        with patch("deepreport.tools.brave_search.settings") as mock_settings, patch(
            "deepreport.tools.brave_search.httpx.AsyncClient", factory
        ):
            _brave_settings(mock_settings)
            results = await brave_search.search("energy storage", max_results=5, time_filter="week")

        assert results == [
            SearchResult(title="Grid batteries", url="https://a.com/1", snippet="Lithium storage"),
            SearchResult(title="Pumped hydro", url="https://b.org/2", snippet="x y"),
        ]
        params = client.get.await_args.kwargs["params"]
        assert params == {"q": "energy storage", "count": 5, "freshness": "pw"}

    @pytest.mark.asyncio
    async def test_all_time_sends_no_freshness(self):
        factory, client = _async_client_returning(httpx.Response(200, json={}))
        with patch("deepreport.tools.brave_search.settings") as mock_settings, patch(
            "deepreport.tools.brave_search.httpx.AsyncClient", factory
        ):
            _brave_settings(mock_settings)
            assert await brave_search.search("q") == []
        assert "freshness" not in client.get.await_args.kwargs["params"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error_cls",
        [(429, RateLimitError), (403, QuotaExhaustedError), (500, UpstreamError)],
    )
    async def test_status_mapping(self, status, error_cls):
        factory, _ = _async_client_returning(httpx.Response(status))
        with patch("deepreport.tools.brave_search.settings") as mock_settings, patch(
            "deepreport.tools.brave_search.httpx.AsyncClient", factory
        ):
            _brave_settings(mock_settings)
            with pytest.raises(error_cls):
                await brave_search.search("q")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with patch("deepreport.tools.brave_search.settings") as mock_settings:
            mock_settings.brave_api_key = ""
            with pytest.raises(RuntimeError):
                await brave_search.search("q")


def test_parse_jina_search_response():
    text = (
        "[1] Title: Grid batteries\n"
        "[1] URL Source: https://a.com/1\n"
        "[1] Description: Lithium storage\n\n"
        "[2] Title: Pumped hydro\n"
        "[2] URL Source: https://b.org/2\n"
        "[2] Description: Water\n"
    )
    results = _parse_jina_search_response(text, max_results=1)
    assert results == [SearchResult(title="Grid batteries", url="https://a.com/1", snippet="Lithium storage")]


@pytest.mark.asyncio
async def test_search_provider_uses_jina_when_configured():
    with patch("deepreport.tools.search_provider.settings") as mock_settings, patch.object(
        jina_search, "search", AsyncMock(return_value=[])
    ) as jina:
        mock_settings.search_provider = "jina"

        result = await search_provider.search("query", max_results=3)

    assert result.provider == "jina"
    jina.assert_awaited_once_with("query", max_results=3, time_filter="all")


@pytest.mark.asyncio
async def test_search_provider_raises_when_provider_unsupported():
    with patch("deepreport.tools.search_provider.settings") as mock_settings:
        mock_settings.search_provider = "unknown-provider"

        with pytest.raises(ValueError):
            await search_provider.search("query")


@pytest.mark.asyncio
async def test_search_provider_rejects_unknown_time_filter():
    with pytest.raises(ValueError):
        await search_provider.search("query", time_filter="decade")


@pytest.mark.asyncio
async def test_falls_back_to_jina_on_zero_results():
    fallback = [SearchResult(title="t", url="https://a.com", snippet="s")]
    with patch("deepreport.tools.search_provider.settings") as mock_settings, patch.object(
        brave_search, "search", AsyncMock(return_value=[])
    ), patch.object(jina_search, "search", AsyncMock(return_value=fallback)):
        mock_settings.search_provider = "brave"
        mock_settings.search_fallback_to_jina = True

        result = await search_provider.search("query")

    assert result.provider == "jina"
    assert result.fallback_from == "brave"
    assert result.results == fallback


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [RateLimitError("429"), QuotaExhaustedError("403")])
async def test_never_falls_back_on_rate_limit_or_quota(error):
    jina = AsyncMock()
    with patch("deepreport.tools.search_provider.settings") as mock_settings, patch.object(
        brave_search, "search", AsyncMock(side_effect=error)
    ), patch.object(jina_search, "search", jina):
        mock_settings.search_provider = "brave"
        mock_settings.search_fallback_to_jina = True

        with pytest.raises(type(error)):
            await search_provider.search("query")

    jina.assert_not_awaited()


def test_results_to_candidates_drops_invalid_and_duplicate_urls():
    candidates = search_provider.results_to_candidates(
        [
            SearchResult(title="a", url="https://a.com", snippet="one"),
            SearchResult(title="dup", url="https://a.com", snippet="two"),
            SearchResult(title="bad", url="ftp://files.example", snippet=""),
        ]
    )
    assert [(c.url, c.snippet, c.score) for c in candidates] == [("https://a.com", "one", 0.0)]


class TestJinaReader:
    @pytest.mark.asyncio
    async def test_fetch_text_cleans_content(self):
        from deepreport.tools import jina_reader

        factory, client = _async_client_returning(httpx.Response(200, text="Title\n\n\n\nBody"))
        with patch("deepreport.tools.jina_reader.settings") as mock_settings, patch(
            "deepreport.tools.jina_reader.httpx.AsyncClient", factory
        ):
            mock_settings.jina_api_key = "jina-key"
            mock_settings.fetch_timeout_seconds = 5
            mock_settings.fetch_max_content_chars = 1000

            text = await jina_reader.fetch_text("https://a.com/page?x=1")

        assert text == "Title\n\nBody"
        url = client.get.await_args.args[0]
        assert url == "https://r.jina.ai/https%3A%2F%2Fa.com%2Fpage%3Fx%3D1"
        assert client.get.await_args.kwargs["headers"]["Authorization"] == "Bearer jina-key"

    @pytest.mark.asyncio
    async def test_forbidden_page_is_not_a_quota_error(self):
        from deepreport.tools import jina_reader

        factory, _ = _async_client_returning(httpx.Response(403))
        with patch("deepreport.tools.jina_reader.settings") as mock_settings, patch(
            "deepreport.tools.jina_reader.httpx.AsyncClient", factory
        ):
            mock_settings.jina_api_key = ""
            mock_settings.fetch_timeout_seconds = 5
            with pytest.raises(UpstreamError):
                await jina_reader.fetch_text("https://a.com/private")
