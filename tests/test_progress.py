"""Tests for the run state machine and progress snapshots."""
import pytest

from deepreport.models.progress import AgentStep, FetchStatus
from deepreport.services.progress import InvalidTransitionError, ProgressTracker


def test_happy_path_transitions_and_insight_log():
    seen = []
    tracker = ProgressTracker(listener=seen.append)

    tracker.transition(AgentStep.PROCESSING, "optimizing")
    tracker.transition(AgentStep.SEARCHING, "searching")
    tracker.transition(AgentStep.ANALYZING, "analyzing")
    tracker.transition(AgentStep.GENERATING, "generating")
    tracker.transition(AgentStep.IDLE, "done")

    assert tracker.step is AgentStep.IDLE
    assert tracker.snapshot.insights == ("optimizing", "searching", "analyzing", "generating", "done")
    assert [s.step for s in seen] == [
        AgentStep.PROCESSING,
        AgentStep.SEARCHING,
        AgentStep.ANALYZING,
        AgentStep.GENERATING,
        AgentStep.IDLE,
    ]


def test_skipping_a_stage_is_rejected():
    tracker = ProgressTracker()
    tracker.transition(AgentStep.PROCESSING)
    with pytest.raises(InvalidTransitionError):
        tracker.transition(AgentStep.GENERATING)


def test_manual_path_goes_straight_to_generating():
    tracker = ProgressTracker()
    tracker.transition(AgentStep.GENERATING)
    assert tracker.step is AgentStep.GENERATING


def test_error_keeps_insights_and_returns_to_idle():
    tracker = ProgressTracker()
    tracker.transition(AgentStep.PROCESSING, "optimizing")
    tracker.fail("Too many requests")

    assert tracker.step is AgentStep.ERROR
    assert tracker.snapshot.error == "Too many requests"
    assert tracker.snapshot.insights == ("optimizing", "Research failed: Too many requests")

    tracker.finish_error()
    assert tracker.step is AgentStep.IDLE
    assert tracker.snapshot.insights == (
        "optimizing",
        "Research failed: Too many requests",
        "Ready for a new research run",
    )


def test_snapshots_are_immutable_values():
    tracker = ProgressTracker()
    before = tracker.snapshot
    tracker.add_insights("first")
    assert before.insights == ()
    assert tracker.snapshot.insights == ("first",)
    with pytest.raises(Exception):
        tracker.snapshot.step = AgentStep.ERROR


def test_fetch_tally_and_statuses():
    tracker = ProgressTracker()
    tracker.start_fetch(["https://a.com", "https://b.com", "https://c.com"])
    fetch = tracker.snapshot.fetch
    assert fetch.tally.total == 3
    assert set(fetch.source_statuses.values()) == {FetchStatus.FAILED_PENDING}

    tracker.record_fetch("https://a.com", FetchStatus.FETCHED)
    tracker.record_fetch("https://b.com", FetchStatus.PREVIEW)

    fetch = tracker.snapshot.fetch
    assert (fetch.tally.successful, fetch.tally.fallback) == (1, 1)
    assert fetch.source_statuses["https://c.com"] is FetchStatus.FAILED_PENDING
    assert tracker.snapshot.to_dict()["fetch_status"]["source_statuses"]["https://b.com"] == "preview"


def test_reset_clears_previous_run():
    tracker = ProgressTracker()
    tracker.transition(AgentStep.PROCESSING, "x")
    tracker.set_search_queries(["q"])
    tracker.reset()
    assert tracker.snapshot.to_dict() == {
        "step": "idle",
        "insights": [],
        "fetch_status": {"total": 0, "successful": 0, "fallback": 0, "source_statuses": {}},
        "search_queries": [],
    }
