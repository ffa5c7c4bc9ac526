from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from deepreport.config import settings
from deepreport.errors import UpstreamError
from deepreport.tools import web_utils

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"

FRESHNESS_MAP = {
    "24h": "pd",
    "week": "pw",
    "month": "pm",
    "year": "py",
}


@dataclass
class SearchResult:
    title: str
    url: str
    snippet: str


async def search(
    query: str,
    *,
    max_results: int = 10,
    time_filter: str = "all",
) -> list[SearchResult]:
    """Execute a Brave web search and normalize results."""
    if not settings.brave_api_key:
        raise RuntimeError("BRAVE_API_KEY is not configured")

    params: dict[str, Any] = {
        "q": query,
        "count": max_results,
    }
    if time_filter in FRESHNESS_MAP:
        params["freshness"] = FRESHNESS_MAP[time_filter]

    try:
        async with httpx.AsyncClient(timeout=settings.search_timeout_seconds) as client:
            response = await client.get(
                BRAVE_SEARCH_URL,
                params=params,
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": settings.brave_api_key,
                },
            )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Brave search request failed: {exc}", source="brave") from exc

    web_utils.check_response(response, source="brave", forbidden_is_quota=True)
    payload = response.json()

    raw_results = payload.get("web", {}).get("results", [])
    mapped: list[SearchResult] = []
    for item in raw_results:
        snippets = item.get("extra_snippets", []) or []
        description = item.get("description", "") or ""
        mapped.append(
            SearchResult(
                title=item.get("title", ""),
                url=item.get("url", ""),
                snippet=description.strip() or " ".join(snippets).strip(),
            )
        )
    return mapped
