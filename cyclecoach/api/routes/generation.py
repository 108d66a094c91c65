"""API routes for generation jobs: start, resume, poll, stream, cancel, verify."""
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from fastapi.responses import StreamingResponse

from cyclecoach.api.routes.dependencies import (
    GenerationRunner,
    get_completion_verifier,
    get_current_user_id,
    get_generation_metrics,
    get_generation_queue,
    get_generation_runner,
)
from cyclecoach.config.settings import get_settings
from cyclecoach.core.exceptions import NotFoundError
from cyclecoach.models.enums import GenerationStatus
from cyclecoach.models.generation_job import GenerationJob
from cyclecoach.schemas.generation import (
    GenerationCancelRequest,
    GenerationHistoryResponse,
    GenerationJobResponse,
    GenerationSnapshotResponse,
    GenerationStartRequest,
    VerifyResponse,
)
from cyclecoach.services.completion_verifier import CompletionVerifier
from cyclecoach.services.generation_metrics import GenerationMetricsService
from cyclecoach.services.generation_queue import GenerationQueueManager, JobSnapshot

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _sse(event: str, payload: dict) -> bytes:
    return f"event: {event}\ndata: ".encode("utf-8") + json.dumps(payload, default=str).encode("utf-8") + b"\n\n"


def _job_response(job: GenerationJob, estimated_duration_ms: int | None = None) -> GenerationJobResponse:
    response = GenerationJobResponse.model_validate(job)
    response.estimated_duration_ms = estimated_duration_ms
    return response


@router.post("", response_model=GenerationJobResponse, status_code=status.HTTP_201_CREATED)
async def start_generation(
    request: GenerationStartRequest,
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_current_user_id),
    queue: GenerationQueueManager = Depends(get_generation_queue),
    metrics: GenerationMetricsService = Depends(get_generation_metrics),
    runner: GenerationRunner = Depends(get_generation_runner),
):
    """
    Start a generation, or return the existing job when the request id was seen before.

    Returns 409 when another generation is already active for the user; the
    client should resume that one instead.
    """
    job = await queue.start(
        user_id,
        request.request_id,
        kind=request.kind,
        owner_context=request.context,
        target_cycle_day=request.target_cycle_day,
    )

    if job.status == GenerationStatus.PENDING:
        # The worker's claim is exclusive, so a retried request cannot double-run
        background_tasks.add_task(runner, job.request_id)
        logger.info(f"Scheduled generation worker - request_id={job.request_id}, kind={job.kind.value}")

    estimate = await metrics.estimate_duration_ms(user_id, job.kind)
    return _job_response(job, estimate)


@router.get("/active", response_model=GenerationJobResponse | None)
async def resume_generation(
    user_id: int = Depends(get_current_user_id),
    queue: GenerationQueueManager = Depends(get_generation_queue),
    metrics: GenerationMetricsService = Depends(get_generation_metrics),
):
    """The user's active, non-stale generation, for clients reconnecting after a reload."""
    job = await queue.resume(user_id)
    if job is None:
        return None
    return _job_response(job, await metrics.estimate_duration_ms(user_id, job.kind))


@router.get("/active-for-days", response_model=GenerationJobResponse | None)
async def active_generation_for_days(
    days: list[int] = Query(..., min_length=1),
    user_id: int = Depends(get_current_user_id),
    queue: GenerationQueueManager = Depends(get_generation_queue),
):
    job = await queue.active_for_days(user_id, days)
    return _job_response(job) if job is not None else None


@router.get("/history", response_model=GenerationHistoryResponse)
async def generation_history(
    limit: int = Query(10, ge=1, le=50),
    user_id: int = Depends(get_current_user_id),
    queue: GenerationQueueManager = Depends(get_generation_queue),
    metrics: GenerationMetricsService = Depends(get_generation_metrics),
):
    jobs = await queue.recent(user_id, limit)
    return GenerationHistoryResponse(
        items=[_job_response(job) for job in jobs],
        total=len(jobs),
        average_duration_ms=await metrics.average_duration_ms(user_id),
    )


@router.post("/cleanup")
async def cleanup_generations(
    queue: GenerationQueueManager = Depends(get_generation_queue),
):
    """Delete finished jobs older than the retention window."""
    return {"deleted": await queue.cleanup()}


@router.get("/{request_id}", response_model=GenerationSnapshotResponse)
async def poll_generation(
    request_id: str,
    user_id: int = Depends(get_current_user_id),
    queue: GenerationQueueManager = Depends(get_generation_queue),
):
    job = await queue.get_for_user(request_id, user_id)
    return GenerationSnapshotResponse(**JobSnapshot.from_job(job).to_dict())


@router.get("/{request_id}/stream")
async def stream_generation(
    request_id: str,
    user_id: int = Depends(get_current_user_id),
    queue: GenerationQueueManager = Depends(get_generation_queue),
    verifier: CompletionVerifier = Depends(get_completion_verifier),
):
    """
    Server-sent events: `progress` on every change, then exactly one of
    `complete` (with artifact visibility), `error` or `timeout`.

    Disconnecting only stops the stream; use the cancel endpoint to stop the job.
    """
    await queue.get_for_user(request_id, user_id)

    async def event_stream():
        last: JobSnapshot | None = None
        try:
            async for snapshot in queue.stream(request_id):
                last = snapshot
                yield _sse("progress", snapshot.to_dict())
        except NotFoundError as e:
            yield _sse("error", {"code": e.code, "message": e.message})
            return

        if last is not None and last.status == GenerationStatus.COMPLETED:
            job = await queue.get(request_id)
            visible = await verifier.verify_job(job) if job is not None else False
            yield _sse("complete", {**last.to_dict(), "visible": visible})
        elif last is not None and last.status == GenerationStatus.FAILED:
            job = await queue.get(request_id)
            yield _sse(
                "error",
                {**last.to_dict(), "cancelled": bool(job and job.was_cancelled)},
            )
        else:
            yield _sse("timeout", {"request_id": request_id, "max_duration_seconds": settings.stream_max_duration_seconds})

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/{request_id}/cancel", response_model=GenerationJobResponse)
async def cancel_generation(
    request_id: str,
    request: GenerationCancelRequest | None = None,
    user_id: int = Depends(get_current_user_id),
    queue: GenerationQueueManager = Depends(get_generation_queue),
):
    """Cancel frees the user's active slot immediately; a job that already completed is returned as is."""
    job = await queue.cancel(request_id, user_id)
    if request is not None and request.reason:
        logger.info(f"Generation cancelled - request_id={request_id}, reason={request.reason}")
    return _job_response(job)


@router.post("/{request_id}/verify", response_model=VerifyResponse)
async def verify_generation(
    request_id: str,
    user_id: int = Depends(get_current_user_id),
    queue: GenerationQueueManager = Depends(get_generation_queue),
    verifier: CompletionVerifier = Depends(get_completion_verifier),
):
    """Wait (bounded) until the produced artifact is visible on the read path."""
    job = await queue.get_for_user(request_id, user_id)
    return VerifyResponse(
        request_id=job.request_id,
        artifact_id=job.produced_artifact_id,
        visible=await verifier.verify_job(job),
    )
