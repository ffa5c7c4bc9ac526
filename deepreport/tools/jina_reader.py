from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

import httpx

from deepreport.config import settings
from deepreport.errors import UpstreamError
from deepreport.tools import web_utils

JINA_READER_URL = "https://r.jina.ai/"


@dataclass
class ReaderResult:
    """Page content returned by the Jina AI reader."""
    url: str
    content: str


async def fetch(url: str) -> ReaderResult:
    """Fetch a page as markdown through the Jina AI reader.

    API: GET https://r.jina.ai/<url>
    Headers:
        - Authorization: Bearer <api_key> (optional, raises the free quota)
        - X-Return-Format: markdown
    """
    headers = {"X-Return-Format": "markdown"}
    if settings.jina_api_key:
        headers["Authorization"] = f"Bearer {settings.jina_api_key}"

    try:
        async with httpx.AsyncClient(timeout=settings.fetch_timeout_seconds) as client:
            response = await client.get(
                f"{JINA_READER_URL}{quote(url, safe='')}",
                headers=headers,
            )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Reader request failed for {url}: {exc}", source="jina_reader") from exc

    web_utils.check_response(response, source="jina_reader")
    return ReaderResult(
        url=url,
        content=web_utils.clean_content(response.text, max_length=settings.fetch_max_content_chars),
    )


async def fetch_text(url: str) -> str:
    """Content-fetch backend: ``url -> text``."""
    result = await fetch(url)
    return result.content
