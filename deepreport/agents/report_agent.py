from __future__ import annotations

import json

from deepreport.agents.base import BaseAgent
from deepreport.models.schemas import FetchedContent, Report, SourceCandidate
from deepreport.services.prompt_store import language_values, render_prompt


class ReportWriterAgent(BaseAgent):
    """Writes the cited report from fetched source content."""

    name = "report"

    @staticmethod
    def format_articles(articles: list[FetchedContent]) -> str:
        blocks = []
        for index, article in enumerate(articles, start=1):
            block = f"\n[{index}] Title: {article.title}\nURL: {article.url}\nContent: {article.content}\n"
            if article.images:
                images = [image.model_dump(mode="json") for image in article.images]
                block += f"Images: {json.dumps(images, ensure_ascii=False)}\n"
            blocks.append(block + "---\n")
        return "\n".join(blocks)

    def build_prompt(self, prompt: str, articles: list[FetchedContent], language: str) -> str:
        return render_prompt(
            "report.prompt",
            user_prompt=prompt,
            articles=self.format_articles(articles),
            **language_values(language),
        )

    async def write(
        self,
        prompt: str,
        articles: list[FetchedContent],
        sources: list[SourceCandidate],
        language: str = "en",
    ) -> Report:
        """Generate the report and attach ``sources`` to it.

        Citation numbers in the reply refer to positions in ``articles``.
        """
        report = await self.ask_model(self.build_prompt(prompt, articles, language), Report)
        return report.model_copy(update={"sources": list(sources)})
