from __future__ import annotations

import re
from urllib.parse import quote

import httpx

from deepreport.config import settings
from deepreport.errors import UpstreamError
from deepreport.tools import web_utils
from deepreport.tools.brave_search import SearchResult

JINA_SEARCH_URL = "https://s.jina.ai/"

RESULT_FIELD_RE = re.compile(
    r"\[(\d+)\]\s+(Title|URL Source|Description):\s*(.*?)(?=\[\d+\]|$)", re.DOTALL
)


def _parse_jina_search_response(text: str, max_results: int = 10) -> list[SearchResult]:
    """Parse Jina search plain text response into SearchResult objects.

    Format:
    [1] Title: ...
    [1] URL Source: ...
    [1] Description: ...

    [2] Title: ...
    ...
    """
    blocks: dict[int, dict[str, str]] = {}
    for index_str, field_name, value in RESULT_FIELD_RE.findall(text):
        blocks.setdefault(int(index_str), {})[field_name] = value.strip()

    results = [
        SearchResult(
            title=fields.get("Title", ""),
            url=fields.get("URL Source", ""),
            snippet=fields.get("Description", ""),
        )
        for _, fields in sorted(blocks.items())
    ]
    return results[:max_results]


async def search(
    query: str,
    *,
    max_results: int = 10,
    time_filter: str = "all",
) -> list[SearchResult]:
    """Execute a web search using the Jina AI search API.

    Jina has no recency filter, so ``time_filter`` is accepted and ignored.
    """
    api_key = settings.jina_api_key
    if not api_key:
        raise RuntimeError("JINA_API_KEY is not configured")

    url = f"{JINA_SEARCH_URL}?q={quote(query, safe='')}"
    try:
        async with httpx.AsyncClient(timeout=settings.search_timeout_seconds) as client:
            response = await client.get(
                url,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "X-Respond-With": "no-content",
                },
            )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Jina search request failed: {exc}", source="jina") from exc

    web_utils.check_response(response, source="jina", forbidden_is_quota=True)
    return _parse_jina_search_response(response.text, max_results)
