"""FastAPI routes for course generation jobs."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from coursegen.api.deps import get_runtime, get_submitter
from coursegen.models.course import CourseParams, GenerationMode
from coursegen.models.job import JobEnvelope, JobFamily
from coursegen.models.progress import JobProgress
from coursegen.runtime import JobRuntime
from coursegen.services.courses import load_subtopic, load_topic
from coursegen.services.submission import JobSubmitter
from coursegen.utils.errors import CourseGenError, GenerationError, NotFoundError

logger = logging.getLogger(__name__)

# Create router
router = APIRouter()


# ==================== Error Response Model ====================


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    error_type: str
    errors: Optional[List[Dict[str, Any]]] = None


# ==================== Exception Handlers ====================


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "error_type": "ValidationError",
            "errors": exc.errors(include_url=False, include_context=False),
        },
    )


async def course_gen_exception_handler(request: Request, exc: CourseGenError) -> JSONResponse:
    """Handle application-specific errors."""
    status_code = 500

    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, GenerationError):
        status_code = 502  # Bad Gateway for external generation errors

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error_type": type(exc).__name__,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error_type": "HTTPException",
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_type": "InternalError",
        },
    )


# ==================== Request/Response Models ====================


class GenerateCourseRequest(CourseParams):
    """Request model for course generation."""

    user_id: str = Field(min_length=1, description="Owner of the course")


class JobAcceptedResponse(BaseModel):
    """Response for an accepted job; poll or subscribe with the job id."""

    job_id: str
    status: str = "pending"
    message: str

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


# ==================== Endpoints ====================


@router.get("/health")
async def health(runtime: JobRuntime = Depends(get_runtime)) -> dict:
    return {
        "status": "ok",
        "queues": {family.value: queue.running for family, queue in runtime.queues.items()},
    }


@router.post("/api/courses/generate", response_model=JobAcceptedResponse, status_code=202)
async def generate_course(
    request: GenerateCourseRequest,
    submitter: JobSubmitter = Depends(get_submitter),
) -> JobAcceptedResponse:
    """
    Start generating a course.

    Returns immediately with a job id; progress is available from
    ``/api/jobs/{job_id}`` and ``/ws/jobs/{job_id}``.
    """
    job_id = await submitter.submit(
        JobFamily.COURSE,
        {"course": request.model_dump(exclude={"user_id"})},
        user_id=request.user_id,
    )
    return JobAcceptedResponse(job_id=job_id, message="Course generation started")


@router.post(
    "/api/courses/{course_id}/topics/{topic_id}/generate",
    response_model=JobAcceptedResponse,
    status_code=202,
)
async def generate_topic(
    course_id: str,
    topic_id: str,
    mode: GenerationMode = Query(default="partial"),
    user_id: Optional[str] = Query(default=None),
    runtime: JobRuntime = Depends(get_runtime),
) -> JobAcceptedResponse:
    """Start generating one topic; ``mode=full`` also writes its subtopics."""
    await load_topic(runtime.courses, course_id, topic_id)

    job_id = await runtime.submitter.submit(
        JobFamily.TOPIC,
        {"course_id": course_id, "topic_id": topic_id, "mode": mode},
        user_id=user_id,
    )
    return JobAcceptedResponse(job_id=job_id, message=f"Topic generation started for {topic_id}")


@router.post(
    "/api/courses/{course_id}/topics/{topic_id}/subtopics/{subtopic_id}/generate",
    response_model=JobAcceptedResponse,
    status_code=202,
)
async def generate_subtopic(
    course_id: str,
    topic_id: str,
    subtopic_id: str,
    user_id: Optional[str] = Query(default=None),
    runtime: JobRuntime = Depends(get_runtime),
) -> JobAcceptedResponse:
    """Start generating whatever one subtopic is missing."""
    await load_subtopic(runtime.courses, course_id, topic_id, subtopic_id)

    job_id = await runtime.submitter.submit(
        JobFamily.SUBTOPIC,
        {"course_id": course_id, "topic_id": topic_id, "subtopic_id": subtopic_id},
        user_id=user_id,
    )
    return JobAcceptedResponse(
        job_id=job_id, message=f"Subtopic generation started for {subtopic_id}"
    )


@router.get(
    "/api/jobs/{job_id}",
    response_model=JobProgress,
    responses={404: {"model": ErrorResponse}},
)
async def get_job_progress(
    job_id: str,
    submitter: JobSubmitter = Depends(get_submitter),
) -> JobProgress:
    """Current progress of a job."""
    progress = await submitter.get_progress(job_id)
    if progress is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return progress


@router.get("/api/queues/{family}/failed", response_model=List[JobEnvelope])
async def list_failed_jobs(
    family: JobFamily,
    runtime: JobRuntime = Depends(get_runtime),
) -> List[JobEnvelope]:
    """Jobs of a family that exhausted their attempts."""
    return await runtime.queues[family].failed_jobs()


# ==================== Live Progress ====================


@router.websocket("/ws/jobs/{job_id}")
async def job_progress_socket(websocket: WebSocket, job_id: str) -> None:
    """
    Stream progress snapshots of one job.

    The current stored snapshot is sent first (when the job exists), then
    every snapshot published afterwards. Clients reconnecting must rely on
    that first message; missed snapshots are not replayed. Sending
    ``{"action": "unsubscribe"}`` ends the stream.
    """
    runtime: JobRuntime = websocket.app.state.runtime
    await websocket.accept()

    # Subscribe before reading so nothing published in between is missed.
    subscription = runtime.broadcaster.subscribe(job_id)

    async def forward() -> None:
        async for snapshot in subscription:
            await websocket.send_json(snapshot.to_wire())

    forwarder: Optional[asyncio.Task] = None
    try:
        current = await runtime.submitter.get_progress(job_id)
        if current is not None:
            await websocket.send_json(current.to_wire())

        forwarder = asyncio.create_task(forward())
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("action") == "unsubscribe":
                await websocket.close()
                break
    except WebSocketDisconnect:
        logger.debug(f"Subscriber of job {job_id} disconnected")
    finally:
        runtime.broadcaster.unsubscribe(subscription)
        if forwarder is not None:
            forwarder.cancel()
            await asyncio.gather(forwarder, return_exceptions=True)
