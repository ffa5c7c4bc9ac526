from __future__ import annotations

import asyncio

import httpx
from loguru import logger

from deepreport.agents.base import BaseAgent
from deepreport.config import settings
from deepreport.models.schemas import ReportImage
from deepreport.services.prompt_store import render_prompt
from deepreport.tools import web_utils

MAX_CONTENT_CHARS = 20000


async def image_is_reachable(url: str) -> bool:
    try:
        async with httpx.AsyncClient(timeout=10.0, follow_redirects=True) as client:
            response = await client.head(url, headers={"Accept": "image/*"})
    except httpx.HTTPError:
        return False
    return response.status_code == 200


class ImageAnalyzerAgent(BaseAgent):
    """Picks report-worthy images out of fetched page content."""

    name = "image_analysis"

    def __init__(self, *args, verify_urls: bool = True, min_relevance: float | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.verify_urls = verify_urls
        self.min_relevance = settings.image_min_relevance if min_relevance is None else min_relevance

    async def find_images(self, content: str, url: str) -> list[ReportImage]:
        payload = await self.ask_json(
            render_prompt("image_analysis.prompt", content=content[:MAX_CONTENT_CHARS], url=url)
        )
        images: list[ReportImage] = []
        for item in payload.get("images") or []:
            if not isinstance(item, dict):
                continue
            image_url = str(item.get("url") or "").strip()
            if not web_utils.is_valid_url(image_url):
                continue
            try:
                relevance = float(item.get("relevance_score", 0) or 0)
            except (TypeError, ValueError):
                relevance = 0.0
            if relevance <= self.min_relevance:
                continue
            images.append(
                ReportImage(
                    url=image_url,
                    description=str(item.get("description") or ""),
                    context=str(item.get("context") or ""),
                    relevance_score=relevance,
                )
            )

        if not self.verify_urls or not images:
            return images

        reachable = await asyncio.gather(*(image_is_reachable(image.url) for image in images))
        kept = [image for image, ok in zip(images, reachable) if ok]
        if len(kept) < len(images):
            logger.debug(f"Dropped {len(images) - len(kept)} unreachable images for {url}")
        return kept
