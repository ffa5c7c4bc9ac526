from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncGenerator, Awaitable, Callable, TypeVar
from uuid import uuid4

from loguru import logger

from deepreport.agents.analyzer_agent import RelevanceAnalyzerAgent
from deepreport.agents.image_agent import ImageAnalyzerAgent
from deepreport.agents.optimizer_agent import QueryOptimizerAgent
from deepreport.agents.report_agent import ReportWriterAgent
from deepreport.config import Settings, settings as default_settings
from deepreport.errors import DeepReportError, NoResultsError, user_message_for
from deepreport.llm_client import LLMClient
from deepreport.models.events import SSEEvent
from deepreport.models.progress import AgentProgress, AgentStep
from deepreport.models.schemas import FetchedContent, Report, SourceCandidate
from deepreport.services import logger as log_service
from deepreport.services import streaming
from deepreport.services.content_fetch import Fetcher, fetch_selected_content
from deepreport.services.model_registry import ModelRegistry
from deepreport.services.progress import ProgressTracker
from deepreport.services.ranking import (
    dedupe_candidates,
    merge_rankings,
    rank_candidates,
    select_diverse_sources,
    unique_domain_count,
)
from deepreport.services.retry import Sleeper, with_backoff
from deepreport.tools import jina_reader, search_provider
from deepreport.tools.search_provider import SearchResponse

T = TypeVar("T")

Emit = Callable[[SSEEvent], None]
SearchFn = Callable[..., Awaitable[SearchResponse]]


class ResearchOrchestrator:
    """Runs the research pipeline for one session.

    Flow:
      1. Optimize the topic into a search query and research prompt
      2. Search the web with the optimized query
      3. Score results for relevance and rank them
      4. Pick a small, host-diverse set of sources
      5. Fetch full content for the chosen sources (concurrently)
      6. Generate the cited report

    Every external call goes through the rate-limit backoff wrapper. Progress
    is exposed as immutable ``AgentProgress`` snapshots carried by SSE events.
    Only one run may be active at a time; a new run resets all run state.
    """

    def __init__(
        self,
        model: str | None = None,
        *,
        config: Settings | None = None,
        registry: ModelRegistry | None = None,
        llm: LLMClient | None = None,
        search_fn: SearchFn | None = None,
        fetch_fn: Fetcher | None = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.config = config or default_settings
        self.model = model or self.config.default_model
        self.registry = registry or ModelRegistry.from_settings(self.config)
        self.search_fn = search_fn or search_provider.search
        self.fetch_fn = fetch_fn or jina_reader.fetch_text
        self._sleep = sleep

        self.optimizer = QueryOptimizerAgent(self.model, client=llm)
        self.analyzer = RelevanceAnalyzerAgent(self.model, client=llm)
        self.writer = ReportWriterAgent(self.model, client=llm)
        self.image_analyzer: ImageAnalyzerAgent | None = None
        if self.config.image_analysis_enabled:
            self.image_analyzer = ImageAnalyzerAgent(
                self.config.image_analysis_model or self.model,
                client=llm,
                min_relevance=self.config.image_min_relevance,
            )

        self.tracker = ProgressTracker()
        self.run_id: str | None = None
        self.ranked_sources: list[SourceCandidate] = []
        self.selected_sources: list[SourceCandidate] = []
        self.report: Report | None = None
        self.last_error: BaseException | None = None
        self._running = False

    @property
    def progress(self) -> AgentProgress:
        return self.tracker.snapshot

    # --- run bookkeeping ---

    def _begin_run(self, listener: Callable[[AgentProgress], None] | None) -> None:
        if self._running:
            raise RuntimeError("A research run is already in progress")
        self._running = True
        self.run_id = uuid4().hex[:12]
        self.ranked_sources = []
        self.selected_sources = []
        self.report = None
        self.last_error = None
        self.tracker.set_listener(None)
        self.tracker.reset()
        self.tracker.set_listener(listener)

    def _end_run(self) -> None:
        self.tracker.set_listener(None)
        self._running = False

    async def _call(self, label: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await with_backoff(
            operation,
            max_retries=self.config.retry_max_attempts,
            base_delay=self.config.retry_base_delay,
            label=label,
            sleep=self._sleep,
        )

    def _step(self, step_type: str, status: str, **data: Any) -> None:
        log_service.log_research_step(self.run_id or "-", step_type, status, data or None)

    def _fail(self, exc: BaseException, emit: Emit | None) -> None:
        self.last_error = exc
        message = user_message_for(exc)
        if isinstance(exc, DeepReportError):
            logger.warning(f"Research run {self.run_id} failed: {type(exc).__name__}: {exc}")
        else:
            logger.exception(f"Research run {self.run_id} failed unexpectedly")
        self._step(self.tracker.step.value, "failed", error=type(exc).__name__)
        self.tracker.fail(message)
        self.tracker.finish_error()
        # The error event closes the stream, so it goes out after the idle snapshot.
        if emit is not None:
            emit(
                streaming.error(
                    message,
                    error_type=type(exc).__name__,
                    insights=list(self.tracker.snapshot.insights),
                )
            )

    # --- stages ---

    async def _generate_report(
        self,
        sources: list[SourceCandidate],
        prompt: str,
        language: str,
        emit: Emit | None,
    ) -> Report:
        self.tracker.transition(
            AgentStep.GENERATING, f"Fetching content from {len(sources)} sources"
        )
        self._step("fetch", "started", sources=len(sources))

        def on_content(url: str, content: str) -> None:
            if emit is not None:
                emit(streaming.scrape_result(url, content[:500]))

        image_finder = self.image_analyzer.find_images if self.image_analyzer else None
        contents = await fetch_selected_content(
            sources,
            self.fetch_fn,
            self.tracker,
            image_finder=image_finder,
            on_content=on_content,
        )
        tally = self.tracker.snapshot.fetch.tally
        self.tracker.add_insights(
            f"Retrieved full content for {tally.successful} of {tally.total} sources"
            + (f" ({tally.fallback} using preview snippets)" if tally.fallback else "")
        )
        self._step("fetch", "completed", **tally.to_dict())

        # Citation numbers refer to positions among the articles actually sent.
        by_url = {s.url: s for s in sources}
        articles: list[FetchedContent] = [c for c in contents if c.content.strip()]
        cited_pool = [by_url[a.url] for a in articles]

        self.tracker.add_insights(f"Writing report from {len(articles)} sources")
        self._step("report", "started", articles=len(articles), language=language)
        report = await self._call(
            "report",
            lambda: self.writer.write(prompt, articles, cited_pool, language),
        )
        self._step("report", "completed", used_sources=report.used_sources)
        self.report = report
        return report

    async def _run_topic(self, topic: str, time_filter: str, language: str, emit: Emit) -> None:
        t0 = time.monotonic()
        tracker = self.tracker
        try:
            self.registry.ensure_available(self.model)

            tracker.transition(AgentStep.PROCESSING, f"Optimizing research topic: {topic}")
            self._step("optimize", "started", topic=topic[:100])
            optimization = await self._call("optimize", lambda: self.optimizer.optimize(topic))
            tracker.set_search_queries([optimization.query])
            notes = [f"Research strategy: {optimization.explanation}"]
            if optimization.suggested_structure:
                notes.append(f"Suggested structure: {' → '.join(optimization.suggested_structure)}")
            tracker.add_insights(*notes)
            self._step("optimize", "completed", query=optimization.query)

            tracker.transition(AgentStep.SEARCHING, f"Searching the web for: {optimization.query}")
            response = await self._call(
                "search",
                lambda: self.search_fn(
                    optimization.query,
                    max_results=self.config.search_max_results,
                    time_filter=time_filter,
                ),
            )
            candidates = search_provider.results_to_candidates(response.results)
            if not candidates:
                raise NoResultsError(f"Search returned no results for '{optimization.query}'")
            emit(streaming.search_result(optimization.query, candidates, provider=response.provider))
            self._step("search", "completed", provider=response.provider, results=len(candidates))

            tracker.transition(AgentStep.ANALYZING, f"Analyzing {len(candidates)} search results")
            analysis = await self._call(
                "analyze",
                lambda: self.analyzer.analyze(optimization.optimized_prompt, candidates),
            )
            ranked = rank_candidates(merge_rankings(candidates, analysis.rankings))
            self.ranked_sources = ranked
            tracker.add_insights(
                f"Analysis: {analysis.analysis}",
                f"Found {len(ranked)} relevant results",
            )

            selected = select_diverse_sources(
                ranked,
                max_sources=self.config.max_selectable_results,
                min_score=self.config.selection_min_score,
            )
            self.selected_sources = selected
            emit(streaming.sources_ranked(ranked, selected))
            tracker.add_insights(
                f"Selected {len(selected)} diverse sources from "
                f"{unique_domain_count(selected)} unique domains"
            )
            self._step("select", "completed", selected=[s.url for s in selected])

            report = await self._generate_report(
                selected,
                f"{optimization.optimized_prompt}. Provide comprehensive analysis.",
                language,
                emit,
            )
            tracker.transition(AgentStep.IDLE, "Report generated successfully")
            runtime_ms = int((time.monotonic() - t0) * 1000)
            logger.info(f"Research run {self.run_id} complete in {runtime_ms}ms")
            emit(streaming.research_complete(report, runtime_ms=runtime_ms))
        except Exception as exc:
            self._fail(exc, emit)

    # --- public interface ---

    async def research(
        self,
        topic: str,
        *,
        time_filter: str = "all",
        language: str | None = None,
    ) -> AsyncGenerator[SSEEvent, None]:
        """Run the full pipeline for ``topic``, yielding events as it goes.

        Yields ``progress`` events for every state change and ends with
        exactly one ``research_complete`` or ``error`` event.
        """
        if not topic or not topic.strip():
            raise ValueError("Please provide a research topic")
        if time_filter not in search_provider.TIME_FILTERS:
            raise ValueError(f"Unsupported time filter: {time_filter}")

        queue: asyncio.Queue[SSEEvent | None] = asyncio.Queue()
        self._begin_run(lambda snapshot: queue.put_nowait(streaming.progress(snapshot)))
        logger.info(f"Starting research run {self.run_id} for topic: {topic[:100]}")

        runner = asyncio.create_task(
            self._run_topic(
                topic.strip(),
                time_filter,
                language or self.config.default_language,
                queue.put_nowait,
            )
        )
        runner.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if not runner.done():
                runner.cancel()
                try:
                    await runner
                except asyncio.CancelledError:
                    pass
            self._end_run()

    async def generate_manual_report(
        self,
        sources: list[SourceCandidate],
        prompt: str,
        language: str | None = None,
        *,
        on_progress: Callable[[AgentProgress], None] | None = None,
    ) -> Report:
        """Fetch and report on user-chosen sources, skipping optimize/search/analyze."""
        if not sources:
            raise ValueError("Select at least one source")
        if len(sources) > self.config.max_selectable_results:
            raise ValueError(
                f"At most {self.config.max_selectable_results} sources can be selected"
            )
        if not prompt or not prompt.strip():
            raise ValueError("Please provide a report prompt")

        self._begin_run(on_progress)
        try:
            self.registry.ensure_available(self.model)
            self.selected_sources = dedupe_candidates(sources)
            report = await self._generate_report(
                self.selected_sources,
                prompt.strip(),
                language or self.config.default_language,
                None,
            )
            self.tracker.transition(AgentStep.IDLE, "Report generated successfully")
            return report
        except Exception as exc:
            self._fail(exc, None)
            raise
        finally:
            self._end_run()
