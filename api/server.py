import asyncio
import logging
import uuid
from functools import lru_cache

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from analyst_panel.agents.collaborative.application.factory import (
    build_collaborative_orchestrator,
)
from analyst_panel.agents.collaborative.application.orchestrator import (
    CollaborativeAnalysisOrchestrator,
)
from analyst_panel.agents.collaborative.domain.errors import (
    AnalysisPipelineError,
    ConfigurationError,
)
from analyst_panel.agents.collaborative.interface.contracts import AnalysisRequest
from analyst_panel.agents.collaborative.interface.serializers import (
    build_error_payload,
    build_provider_catalogue_payload,
    build_rate_limit_status_payload,
    build_report_payload,
    format_sse_event,
)
from analyst_panel.shared.kernel.tools.logger import (
    configure_logging,
    get_logger,
    log_context,
    log_event,
)

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Analyst Panel API",
    version="1.0",
    description="Collaborative multi-analyst decision pipeline",
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@lru_cache(maxsize=1)
def get_orchestrator() -> CollaborativeAnalysisOrchestrator:
    return build_collaborative_orchestrator()


@app.get("/")
async def health_check():
    return {"status": "ok", "service": "analyst-panel"}


@app.get("/providers")
async def list_providers(
    orchestrator: CollaborativeAnalysisOrchestrator = Depends(get_orchestrator),
):
    return build_provider_catalogue_payload(orchestrator.registry.describe_all())


@app.get("/rate-limits")
async def rate_limit_status(
    orchestrator: CollaborativeAnalysisOrchestrator = Depends(get_orchestrator),
):
    return build_rate_limit_status_payload(orchestrator.admission.status())


@app.post("/analysis")
async def stream_analysis(
    body: AnalysisRequest,
    orchestrator: CollaborativeAnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Run one collaborative analysis and stream it as Server-Sent Events:
    ``progress`` and ``disable`` while running, then one ``report`` or ``error``.
    """
    request_id = uuid.uuid4().hex
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[tuple[str, object] | None] = asyncio.Queue()

    def on_progress(message: str) -> None:
        loop.call_soon_threadsafe(
            queue.put_nowait, ("progress", {"message": message})
        )

    def on_disable(provider_id: str) -> None:
        loop.call_soon_threadsafe(
            queue.put_nowait, ("disable", {"provider_id": provider_id})
        )

    with log_context(request_id=request_id):
        try:
            run = orchestrator.start_analysis(
                body.subject, body.settings, on_progress, on_disable
            )
        except ConfigurationError as exc:
            raise HTTPException(status_code=400, detail=exc.to_payload()) from exc

    run.task.add_done_callback(lambda _: loop.call_soon(queue.put_nowait, None))

    async def event_generator():
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                event, data = item
                yield format_sse_event(event, data)

            try:
                report = run.task.result()
            except asyncio.CancelledError:
                yield format_sse_event(
                    "error",
                    {
                        "error_code": "CONSENSUS_RUN_CANCELLED",
                        "phase": run.phase.value,
                        "message": "analysis was cancelled",
                    },
                )
            except AnalysisPipelineError as exc:
                yield format_sse_event("error", build_error_payload(exc))
            except Exception as exc:
                log_event(
                    logger,
                    event="analysis_stream_failed",
                    message="unexpected error while running analysis",
                    level=logging.ERROR,
                    error_code="CONSENSUS_UNEXPECTED_ERROR",
                    fields={"request_id": request_id, "exception": str(exc)},
                )
                yield format_sse_event("error", build_error_payload(exc))
            else:
                yield format_sse_event("report", build_report_payload(report))
        finally:
            # Client went away mid-run
            if not run.task.done():
                run.cancel()

    return StreamingResponse(event_generator(), media_type="text/event-stream")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
