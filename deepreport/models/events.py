from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    PROGRESS = "progress"
    SEARCH_RESULT = "search_result"
    SOURCES_RANKED = "sources_ranked"
    SCRAPE_RESULT = "scrape_result"
    RESEARCH_COMPLETE = "research_complete"
    ERROR = "error"


@dataclass
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.event in (EventType.RESEARCH_COMPLETE, EventType.ERROR)

    def to_sse(self) -> dict[str, str]:
        """Message dict in the shape ``EventSourceResponse`` sends."""
        return {"event": self.event.value, "data": json.dumps(self.data)}
