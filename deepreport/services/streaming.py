from __future__ import annotations

from typing import Any

from deepreport.models.events import EventType, SSEEvent
from deepreport.models.progress import AgentProgress
from deepreport.models.schemas import Report, SourceCandidate


def progress(snapshot: AgentProgress) -> SSEEvent:
    return SSEEvent(event=EventType.PROGRESS, data=snapshot.to_dict())


def search_result(query: str, results: list[SourceCandidate], *, provider: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {
        "query": query,
        "results": [r.model_dump(mode="json", exclude={"content", "images"}) for r in results],
    }
    if provider:
        data["provider"] = provider
    return SSEEvent(event=EventType.SEARCH_RESULT, data=data)


def sources_ranked(ranked: list[SourceCandidate], selected: list[SourceCandidate]) -> SSEEvent:
    return SSEEvent(
        event=EventType.SOURCES_RANKED,
        data={
            "ranked": [{"url": r.url, "title": r.title, "score": r.score} for r in ranked],
            "selected": [r.url for r in selected],
        },
    )


def scrape_result(url: str, content_preview: str) -> SSEEvent:
    return SSEEvent(
        event=EventType.SCRAPE_RESULT,
        data={"url": url, "content_preview": content_preview},
    )


def research_complete(report: Report, runtime_ms: int | None = None) -> SSEEvent:
    data: dict[str, Any] = {"report": report.model_dump(mode="json", by_alias=True)}
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.RESEARCH_COMPLETE, data=data)


def error(message: str, *, error_type: str | None = None, insights: list[str] | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if error_type:
        data["error_type"] = error_type
    if insights is not None:
        data["insights"] = insights
    return SSEEvent(event=EventType.ERROR, data=data)
