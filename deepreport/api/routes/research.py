from __future__ import annotations

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from deepreport.agents.orchestrator import ResearchOrchestrator
from deepreport.api.deps import status_for_error
from deepreport.errors import DeepReportError, user_message_for
from deepreport.models.schemas import ManualReportRequest, Report, ResearchRequest
from deepreport.services import logger as log_service
from deepreport.services import streaming

router = APIRouter(prefix="/api/research", tags=["research"])


def build_orchestrator(model: str | None = None) -> ResearchOrchestrator:
    return ResearchOrchestrator(model=model)


@router.post("/stream")
async def stream_research(request: ResearchRequest):
    """SSE endpoint that runs the research pipeline and streams its events."""
    if not request.topic.strip():
        raise HTTPException(status_code=400, detail="Please provide a research topic")

    orchestrator = build_orchestrator(request.model)

    async def event_generator():
        log_service.log_event(
            event_type="research_started",
            message="Research started",
            model=orchestrator.model,
            topic=request.topic[:100],
            time_filter=request.time_filter,
        )
        try:
            async for event in orchestrator.research(
                request.topic,
                time_filter=request.time_filter,
                language=request.language,
            ):
                yield event.to_sse()
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in research stream",
                error=str(e),
                topic=request.topic[:100],
            )
            error_event = streaming.error(user_message_for(e), error_type=type(e).__name__)
            yield error_event.to_sse()

    return EventSourceResponse(event_generator())


@router.post("/report", response_model=Report)
async def manual_report(request: ManualReportRequest):
    """Generate a report from sources the user picked, skipping search and analysis."""
    orchestrator = build_orchestrator(request.model)
    try:
        return await orchestrator.generate_manual_report(
            request.sources,
            request.prompt,
            request.language,
        )
    except (DeepReportError, ValueError) as e:
        log_service.log_event(
            event_type="manual_report_failed",
            message="Manual report generation failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise HTTPException(status_code=status_for_error(e), detail=user_message_for(e)) from e
