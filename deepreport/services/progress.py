"""Run state machine and progress snapshots.

``ProgressTracker`` owns the only mutable progress state of a run. Every
change produces a new immutable ``AgentProgress`` and hands it to the
listener, so callers never observe a half-applied update.
"""
from __future__ import annotations

from dataclasses import replace
from types import MappingProxyType
from typing import Callable, Iterable

from deepreport.models.progress import (
    AgentProgress,
    AgentStep,
    FetchProgress,
    FetchStatus,
    FetchTally,
)

ProgressListener = Callable[[AgentProgress], None]

ALLOWED_TRANSITIONS: dict[AgentStep, frozenset[AgentStep]] = {
    # idle -> generating is the manual-selection path
    AgentStep.IDLE: frozenset({AgentStep.PROCESSING, AgentStep.GENERATING, AgentStep.ERROR}),
    AgentStep.PROCESSING: frozenset({AgentStep.SEARCHING, AgentStep.ERROR}),
    AgentStep.SEARCHING: frozenset({AgentStep.ANALYZING, AgentStep.ERROR}),
    AgentStep.ANALYZING: frozenset({AgentStep.GENERATING, AgentStep.ERROR}),
    AgentStep.GENERATING: frozenset({AgentStep.IDLE, AgentStep.ERROR}),
    AgentStep.ERROR: frozenset({AgentStep.IDLE}),
}


class InvalidTransitionError(RuntimeError):
    pass


class ProgressTracker:
    def __init__(self, listener: ProgressListener | None = None):
        self._listener = listener
        self._snapshot = AgentProgress()

    @property
    def snapshot(self) -> AgentProgress:
        return self._snapshot

    @property
    def step(self) -> AgentStep:
        return self._snapshot.step

    def set_listener(self, listener: ProgressListener | None) -> None:
        self._listener = listener

    def _publish(self, snapshot: AgentProgress) -> None:
        self._snapshot = snapshot
        if self._listener is not None:
            self._listener(snapshot)

    def reset(self) -> None:
        """Discard the previous run and return to ``idle``."""
        self._publish(AgentProgress())

    def transition(self, step: AgentStep, note: str | None = None) -> None:
        current = self._snapshot.step
        if step not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(f"Cannot move from {current.value} to {step.value}")
        insights = self._snapshot.insights + ((note,) if note else ())
        self._publish(replace(self._snapshot, step=step, insights=insights))

    def add_insights(self, *notes: str) -> None:
        notes = tuple(n for n in notes if n)
        if not notes:
            return
        self._publish(replace(self._snapshot, insights=self._snapshot.insights + notes))

    def set_search_queries(self, queries: Iterable[str]) -> None:
        self._publish(replace(self._snapshot, search_queries=tuple(queries)))

    def start_fetch(self, urls: Iterable[str]) -> None:
        urls = list(urls)
        fetch = FetchProgress(
            tally=FetchTally(total=len(urls)),
            source_statuses=MappingProxyType({url: FetchStatus.FAILED_PENDING for url in urls}),
        )
        self._publish(replace(self._snapshot, fetch=fetch))

    def record_fetch(self, url: str, status: FetchStatus) -> None:
        """Apply one source's settled status and bump the matching counter."""
        fetch = self._snapshot.fetch
        tally = fetch.tally
        if status is FetchStatus.FETCHED:
            tally = replace(tally, successful=tally.successful + 1)
        elif status is FetchStatus.PREVIEW:
            tally = replace(tally, fallback=tally.fallback + 1)
        statuses = dict(fetch.source_statuses)
        statuses[url] = status
        self._publish(
            replace(
                self._snapshot,
                fetch=FetchProgress(tally=tally, source_statuses=MappingProxyType(statuses)),
            )
        )

    def fail(self, message: str) -> None:
        if AgentStep.ERROR not in ALLOWED_TRANSITIONS[self._snapshot.step]:
            return
        insights = self._snapshot.insights + (f"Research failed: {message}",)
        self._publish(replace(self._snapshot, step=AgentStep.ERROR, error=message, insights=insights))

    def finish_error(self) -> None:
        """Leave the ``error`` state so a fresh run can start; insights are kept."""
        if self._snapshot.step is AgentStep.ERROR:
            insights = self._snapshot.insights + ("Ready for a new research run",)
            self._publish(replace(self._snapshot, step=AgentStep.IDLE, insights=insights))
