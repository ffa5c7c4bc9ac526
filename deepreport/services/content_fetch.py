from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from deepreport.errors import RateLimitError
from deepreport.models.progress import FetchStatus
from deepreport.models.schemas import FetchedContent, ReportImage, SourceCandidate
from deepreport.services.progress import ProgressTracker

Fetcher = Callable[[str], Awaitable[str]]
ImageFinder = Callable[[str, str], Awaitable[list[ReportImage]]]
ContentCallback = Callable[[str, str], None]


async def _find_images(image_finder: ImageFinder | None, content: str, url: str) -> list[ReportImage]:
    if image_finder is None:
        return []
    try:
        return await image_finder(content, url)
    except Exception as exc:
        # Image analysis is best-effort; it never changes a source's status.
        logger.warning(f"Image analysis failed for {url}: {exc}")
        return []


async def fetch_selected_content(
    sources: list[SourceCandidate],
    fetcher: Fetcher,
    tracker: ProgressTracker,
    *,
    image_finder: ImageFinder | None = None,
    on_content: ContentCallback | None = None,
) -> list[FetchedContent]:
    """Fetch full content for every selected source, falling back to snippets.

    Sources that already carry content are used as-is. The rest are fetched
    concurrently; a failed or empty fetch marks the source ``preview`` and
    uses its snippet. A ``RateLimitError`` from any fetch cancels the whole
    batch and propagates. The result keeps the order of ``sources``.
    """
    tracker.start_fetch(s.url for s in sources)
    results: list[FetchedContent | None] = [None] * len(sources)

    async def fetch_one(index: int, source: SourceCandidate) -> None:
        try:
            content = await fetcher(source.url)
        except RateLimitError:
            raise
        except Exception as exc:
            logger.warning(f"Content fetch failed for {source.url}, using snippet: {exc}")
            content = ""

        if content and content.strip():
            images = await _find_images(image_finder, content, source.url)
            results[index] = FetchedContent(
                url=source.url, title=source.title, content=content, images=images
            )
            tracker.record_fetch(source.url, FetchStatus.FETCHED)
            if on_content is not None:
                on_content(source.url, content)
        else:
            results[index] = FetchedContent(
                url=source.url, title=source.title, content=source.snippet, images=source.images
            )
            tracker.record_fetch(source.url, FetchStatus.PREVIEW)

    tasks: list[asyncio.Task[None]] = []
    for index, source in enumerate(sources):
        if source.has_content:
            results[index] = FetchedContent(
                url=source.url, title=source.title, content=source.content or "", images=source.images
            )
            tracker.record_fetch(source.url, FetchStatus.FETCHED)
            continue
        tasks.append(asyncio.create_task(fetch_one(index, source)))

    try:
        await asyncio.gather(*tasks)
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    return [r for r in results if r is not None]
