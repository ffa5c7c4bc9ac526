from __future__ import annotations

import json
from datetime import date

from deepreport.agents.base import BaseAgent
from deepreport.models.schemas import RelevanceAnalysis, SourceCandidate
from deepreport.services.prompt_store import render_prompt


class RelevanceAnalyzerAgent(BaseAgent):
    """Scores search results against the research prompt.

    This agent has no tools. It returns a 0..1 score per url plus a short
    analysis of the result set; urls the model leaves out simply get no
    ranking and are scored 0 when merged.
    """

    name = "analyzer"

    @staticmethod
    def _results_payload(candidates: list[SourceCandidate]) -> str:
        rows = []
        for candidate in candidates:
            row = {"title": candidate.title, "snippet": candidate.snippet, "url": candidate.url}
            if candidate.has_content:
                row["content"] = candidate.content[:2000]
            rows.append(row)
        return json.dumps(rows, ensure_ascii=False, indent=2)

    async def analyze(self, prompt: str, candidates: list[SourceCandidate]) -> RelevanceAnalysis:
        return await self.ask_model(
            render_prompt(
                "analyzer.prompt",
                today=date.today().isoformat(),
                prompt=prompt,
                results=self._results_payload(candidates),
            ),
            RelevanceAnalysis,
        )
