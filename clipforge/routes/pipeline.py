import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from clipforge.dependencies.services import get_registry, get_runner
from clipforge.pipeline.observers import ObserverRegistry, ProgressObserver
from clipforge.pipeline.orchestrator import PipelineRunner
from clipforge.schemas import PipelineRequest
from clipforge.utils.paths import validate_project_id
from clipforge.utils.response_helper import handle_service_error

router = APIRouter()
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.post("/pipeline")
async def start_pipeline(body: PipelineRequest, runner: PipelineRunner = Depends(get_runner)):
    try:
        runner.start(body.project_id, body.url)
        logger.info(f"▶️ Pipeline queued for {body.project_id}")
        return {"started": True, "project_id": body.project_id}
    except Exception as e:
        return handle_service_error(e, "Pipeline start")


@router.get("/pipeline/{project_id}/events")
async def pipeline_events(project_id: str, request: Request,
                          registry: ObserverRegistry = Depends(get_registry)):
    try:
        validate_project_id(project_id)
    except ValueError as e:
        return handle_service_error(e, "Pipeline events")

    observer = ProgressObserver(asyncio.get_running_loop())
    registry.register(project_id, observer)

    async def stream():
        try:
            async for event in observer:
                if await request.is_disconnected():
                    break
                yield format_sse(event.to_wire())
        finally:
            # delivery stops here; the run itself carries on
            observer.close()
            registry.unregister(project_id, observer)

    return StreamingResponse(stream(), media_type="text/event-stream", headers=SSE_HEADERS)
