"""Tests for API routes."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from deepreport.agents.orchestrator import ResearchOrchestrator
from deepreport.errors import InsufficientDiversityError, QuotaExhaustedError, RateLimitError
from deepreport.main import app
from deepreport.models.schemas import Report, SourceCandidate
from deepreport.tools.brave_search import SearchResult
from deepreport.tools.search_provider import SearchResponse


@pytest.fixture(autouse=True)
def reset_sse_exit_event():
    # Older sse-starlette releases keep an exit event bound to the first loop they saw.
    import sse_starlette.sse as sse_module

    app_status = getattr(sse_module, "AppStatus", None)
    if app_status is not None and hasattr(app_status, "should_exit_event"):
        app_status.should_exit_event = None
    yield


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "deepreport"}


def test_list_models_only_enabled(client):
    response = client.get("/api/models")
    assert response.status_code == 200
    ids = [m["id"] for m in response.json()["models"]]
    assert "google/gemini-2.0-flash-001" in ids
    assert "openai/o3-mini" not in ids
    assert not any(model_id.startswith("deepseek/") for model_id in ids)
    first = response.json()["models"][0]
    assert first["id"] == f"{first['platform']}/{first['name']}"


def test_stream_emits_progress_and_terminal_event(client, test_settings, fake_llm):
    fake_llm.queue(
        "optimizer",
        {"query": "q", "optimizedPrompt": "p", "explanation": "e", "suggestedStructure": ["a"]},
    )
    fake_llm.queue("analyzer", {"rankings": [{"url": "https://a.com", "score": 0.9}], "analysis": "ok"})
    fake_llm.queue("report", {"title": "T", "summary": "S", "sections": [], "usedSources": [1]})
    orchestrator = ResearchOrchestrator(
        config=test_settings,
        llm=fake_llm,
        search_fn=AsyncMock(
            return_value=SearchResponse(
                results=[SearchResult(title="A", url="https://a.com", snippet="alpha")], provider="brave"
            )
        ),
        fetch_fn=AsyncMock(return_value="full text"),
        sleep=AsyncMock(),
    )

    with patch("deepreport.api.routes.research.build_orchestrator", return_value=orchestrator):
        response = client.post("/api/research/stream", json={"topic": "batteries", "time_filter": "week"})

    assert response.status_code == 200
    body = response.text
    assert "event: progress" in body
    assert "event: sources_ranked" in body
    assert body.count("event: research_complete") == 1
    assert "event: error" not in body


def test_stream_rejects_blank_topic(client):
    response = client.post("/api/research/stream", json={"topic": "  "})
    assert response.status_code == 400


def test_stream_rejects_unknown_time_filter(client):
    response = client.post("/api/research/stream", json={"topic": "x", "time_filter": "decade"})
    assert response.status_code == 422


def _manual_payload(count: int = 1) -> dict:
    return {
        "sources": [{"url": f"https://s{i}.com", "title": f"S{i}"} for i in range(count)],
        "prompt": "Compare these",
    }


def test_manual_report_success(client):
    orchestrator = MagicMock()
    orchestrator.generate_manual_report = AsyncMock(
        return_value=Report(title="T", used_sources=[1], sources=[SourceCandidate(url="https://s0.com")])
    )
    with patch("deepreport.api.routes.research.build_orchestrator", return_value=orchestrator):
        response = client.post("/api/research/report", json=_manual_payload())

    assert response.status_code == 200
    assert response.json()["usedSources"] == [1]


@pytest.mark.parametrize(
    "error,status",
    [
        (QuotaExhaustedError("403"), 403),
        (RateLimitError("429"), 429),
        (InsufficientDiversityError(), 422),
        (ValueError("At most 3 sources can be selected"), 400),
    ],
)
def test_manual_report_error_mapping(client, error, status):
    orchestrator = MagicMock()
    orchestrator.generate_manual_report = AsyncMock(side_effect=error)
    with patch("deepreport.api.routes.research.build_orchestrator", return_value=orchestrator):
        response = client.post("/api/research/report", json=_manual_payload())

    assert response.status_code == status
    if isinstance(error, ValueError):
        assert response.json()["detail"] == "At most 3 sources can be selected"
