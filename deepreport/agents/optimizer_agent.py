from __future__ import annotations

from deepreport.agents.base import BaseAgent
from deepreport.errors import ExtractionError
from deepreport.models.schemas import ResearchOptimization
from deepreport.services.prompt_store import render_prompt


class QueryOptimizerAgent(BaseAgent):
    """Turns a free-text research topic into a search query and research prompt."""

    name = "optimizer"

    async def optimize(self, topic: str) -> ResearchOptimization:
        optimization = await self.ask_model(
            render_prompt("optimizer.prompt", topic=topic),
            ResearchOptimization,
        )
        if not optimization.query.strip():
            raise ExtractionError("Optimizer returned an empty query", raw_text=optimization.model_dump_json())
        if not optimization.optimized_prompt.strip():
            optimization = optimization.model_copy(update={"optimized_prompt": topic})
        return optimization
