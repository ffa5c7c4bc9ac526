from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from deepreport.tools.web_utils import is_valid_url

Language = Literal["en", "vi"]
TimeFilter = Literal["all", "24h", "week", "month", "year"]


# --- Sources ---


class ReportImage(BaseModel):
    url: str
    description: str = ""
    context: str = ""
    relevance_score: float | None = None


def _usable_images(value: Any) -> list[Any]:
    """Drop image entries without an http(s) url instead of failing the parent."""
    if not isinstance(value, list):
        return []
    kept: list[Any] = []
    for item in value:
        if isinstance(item, ReportImage):
            kept.append(item)
        elif isinstance(item, dict) and is_valid_url(str(item.get("url") or "").strip()):
            kept.append({**item, "url": str(item["url"]).strip()})
    return kept


class SourceCandidate(BaseModel):
    """A source found by search (or supplied by the user) before selection."""

    url: str
    title: str = ""
    snippet: str = ""
    content: str | None = None
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    images: list[ReportImage] = []

    @field_validator("images", mode="before")
    @classmethod
    def _drop_unusable_images(cls, value: Any) -> list[Any]:
        return _usable_images(value)

    @property
    def has_content(self) -> bool:
        return bool(self.content and self.content.strip())


class RankingResult(BaseModel):
    url: str
    score: float = 0.0

    @field_validator("score", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        return min(max(score, 0.0), 1.0)


class RelevanceAnalysis(BaseModel):
    rankings: list[RankingResult] = []
    analysis: str = ""


class ResearchOptimization(BaseModel):
    query: str
    optimized_prompt: str = Field(default="", alias="optimizedPrompt")
    explanation: str = ""
    suggested_structure: list[str] = Field(default_factory=list, alias="suggestedStructure")

    model_config = {"populate_by_name": True}


class FetchedContent(BaseModel):
    url: str
    title: str = ""
    content: str = ""
    images: list[ReportImage] = []

    @field_validator("images", mode="before")
    @classmethod
    def _drop_unusable_images(cls, value: Any) -> list[Any]:
        return _usable_images(value)


# --- Report ---


class ReportSection(BaseModel):
    title: str = ""
    content: str = ""
    images: list[ReportImage] = []

    @field_validator("images", mode="before")
    @classmethod
    def _drop_unusable_images(cls, value: Any) -> list[Any]:
        return _usable_images(value)


class Report(BaseModel):
    title: str = ""
    summary: str = ""
    sections: list[ReportSection] = []
    used_sources: list[int] = Field(default_factory=list, alias="usedSources")
    sources: list[SourceCandidate] = []

    model_config = {"populate_by_name": True}

    @field_validator("used_sources", mode="before")
    @classmethod
    def _keep_integer_indices(cls, value: Any) -> list[int]:
        if not isinstance(value, list):
            return []
        indices: list[int] = []
        for item in value:
            try:
                indices.append(int(item))
            except (TypeError, ValueError):
                continue
        return indices

    def cited_sources(self) -> list[SourceCandidate]:
        """Attached sources whose 1-based index appears in ``used_sources``."""
        cited: list[SourceCandidate] = []
        for index in sorted(set(self.used_sources)):
            if 1 <= index <= len(self.sources):
                cited.append(self.sources[index - 1])
        return cited


# --- Requests ---


class ResearchRequest(BaseModel):
    topic: str
    time_filter: TimeFilter = "all"
    language: Language | None = None
    model: str | None = None


class ManualReportRequest(BaseModel):
    sources: list[SourceCandidate]
    prompt: str
    language: Language | None = None
    model: str | None = None


# --- Responses ---


class ModelInfo(BaseModel):
    id: str
    platform: str
    name: str


class ModelsResponse(BaseModel):
    models: list[ModelInfo]
