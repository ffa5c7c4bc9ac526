from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class AgentStep(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SEARCHING = "searching"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    ERROR = "error"


class FetchStatus(str, Enum):
    FETCHED = "fetched"
    PREVIEW = "preview"
    FAILED_PENDING = "failed-pending"


@dataclass(frozen=True, slots=True)
class FetchTally:
    total: int = 0
    successful: int = 0
    fallback: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"total": self.total, "successful": self.successful, "fallback": self.fallback}


@dataclass(frozen=True, slots=True)
class FetchProgress:
    """Immutable view of the fetch stage: the tally plus per-source statuses."""

    tally: FetchTally = field(default_factory=FetchTally)
    source_statuses: Mapping[str, FetchStatus] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.tally.to_dict(),
            "source_statuses": {url: status.value for url, status in self.source_statuses.items()},
        }


@dataclass(frozen=True, slots=True)
class AgentProgress:
    """Snapshot of a run. A new instance is produced for every change."""

    step: AgentStep = AgentStep.IDLE
    insights: tuple[str, ...] = ()
    fetch: FetchProgress = field(default_factory=FetchProgress)
    search_queries: tuple[str, ...] = ()
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "step": self.step.value,
            "insights": list(self.insights),
            "fetch_status": self.fetch.to_dict(),
            "search_queries": list(self.search_queries),
        }
        if self.error is not None:
            data["error"] = self.error
        return data
