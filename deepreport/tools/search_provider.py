from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from deepreport.config import settings
from deepreport.errors import QuotaExhaustedError, RateLimitError
from deepreport.models.schemas import SourceCandidate
from deepreport.services.ranking import dedupe_candidates
from deepreport.tools import brave_search, jina_search, web_utils
from deepreport.tools.brave_search import SearchResult

TIME_FILTERS = ("all", "24h", "week", "month", "year")


@dataclass
class SearchResponse:
    results: list[SearchResult]
    provider: str
    fallback_from: str | None = None
    fallback_reason: str | None = None


async def search(
    query: str,
    *,
    max_results: int = 10,
    time_filter: str = "all",
) -> SearchResponse:
    """Run the configured search provider.

    Rate limits and quota exhaustion always propagate; they are never a
    reason to fall back to the other provider.
    """
    if time_filter not in TIME_FILTERS:
        raise ValueError(f"Unsupported time filter: {time_filter}")

    provider = settings.search_provider.lower().strip()
    use_fallback = settings.search_fallback_to_jina

    if provider == "jina":
        results = await jina_search.search(query, max_results=max_results, time_filter=time_filter)
        return SearchResponse(results=results, provider="jina")

    if provider == "brave":
        try:
            results = await brave_search.search(query, max_results=max_results, time_filter=time_filter)
            if results or not use_fallback:
                return SearchResponse(results=results, provider="brave")
            fallback_reason = "brave returned zero results"
        except (RateLimitError, QuotaExhaustedError):
            raise
        except Exception as e:
            if not use_fallback:
                raise
            fallback_reason = str(e)

        logger.warning(f"Falling back to jina search: {fallback_reason}")
        fallback_results = await jina_search.search(
            query, max_results=max_results, time_filter=time_filter
        )
        return SearchResponse(
            results=fallback_results,
            provider="jina",
            fallback_from="brave",
            fallback_reason=fallback_reason,
        )

    raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")


def results_to_candidates(results: list[SearchResult]) -> list[SourceCandidate]:
    """Valid, unique-by-url candidates with a zero score."""
    return dedupe_candidates(
        SourceCandidate(url=r.url, title=r.title, snippet=r.snippet)
        for r in results
        if web_utils.is_valid_url(r.url)
    )
