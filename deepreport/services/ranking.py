from __future__ import annotations

from typing import Iterable

from deepreport.errors import InsufficientDiversityError, NoRelevantResultsError
from deepreport.models.schemas import RankingResult, SourceCandidate
from deepreport.tools import web_utils

DEFAULT_MIN_SCORE = 0.5
DEFAULT_MAX_SOURCES = 3


def dedupe_candidates(candidates: Iterable[SourceCandidate]) -> list[SourceCandidate]:
    """Drop repeated urls, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[SourceCandidate] = []
    for candidate in candidates:
        if candidate.url in seen:
            continue
        seen.add(candidate.url)
        unique.append(candidate)
    return unique


def merge_rankings(
    candidates: list[SourceCandidate], rankings: Iterable[RankingResult]
) -> list[SourceCandidate]:
    """Copy analysis scores onto candidates by url; unmatched urls score 0."""
    scores: dict[str, float] = {}
    for ranking in rankings:
        # First ranking for a url wins, mirroring a find-first lookup.
        scores.setdefault(ranking.url, ranking.score)
    return [c.model_copy(update={"score": scores.get(c.url, 0.0)}) for c in candidates]


def rank_candidates(candidates: list[SourceCandidate]) -> list[SourceCandidate]:
    """Score-descending order; ``sorted`` is stable so ties keep input order."""
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def select_diverse_sources(
    ranked: list[SourceCandidate],
    *,
    max_sources: int = DEFAULT_MAX_SOURCES,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[SourceCandidate]:
    """Greedy top-k selection with at most one source per scheme+host.

    ``ranked`` must already be in score-descending order. Raises
    ``NoRelevantResultsError`` when every score is 0 and
    ``InsufficientDiversityError`` when nothing qualifies.
    """
    if all(c.score == 0 for c in ranked):
        raise NoRelevantResultsError(f"All {len(ranked)} candidates scored 0")

    selected: list[SourceCandidate] = []
    origins: set[str] = set()
    for candidate in ranked:
        if len(selected) >= max_sources:
            break
        origin = web_utils.origin_key(candidate.url)
        if candidate.score > min_score and origin not in origins:
            selected.append(candidate)
            origins.add(origin)

    if not selected:
        raise InsufficientDiversityError(
            f"No candidate above {min_score} among {len(ranked)} results"
        )
    return selected


def unique_domain_count(sources: Iterable[SourceCandidate]) -> int:
    return len({web_utils.extract_domain(s.url) for s in sources})
