"""Internal routes for Cloud Tasks and Cloud Scheduler callbacks.

These endpoints are called by Google Cloud, not by users directly.
They are protected by OIDC authentication in production.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from backend.api.deps import ProcessingServiceDep, Settings
from backend.config import BackendSettings
from takeout_wrapped.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


class ProcessRequest(BaseModel):
    """Request body for a processing task."""

    job_id: str
    user_id: str


class ProcessResponse(BaseModel):
    """Response from a processing task."""

    job_id: str
    status: str
    stage: str
    progress: int


class CleanupResponse(BaseModel):
    """Response from an artifact cleanup run."""

    jobs_cleaned: int
    blobs_deleted: int


async def verify_cloud_tasks_request(request: Request, settings: BackendSettings) -> bool:
    """Verify that request comes from Cloud Tasks or Cloud Scheduler.

    In production, Cloud Run validates the OIDC token before the request
    reaches us; the queue or scheduler headers are checked in addition.
    In development, all requests are allowed.

    Args:
        request: FastAPI request.
        settings: App settings.

    Returns:
        True if request is authorized.
    """
    if not settings.is_production:
        return True

    task_name = request.headers.get("X-CloudTasks-TaskName")
    queue_name = request.headers.get("X-CloudTasks-QueueName")
    if task_name and queue_name:
        logger.info(f"Cloud Tasks request: task={task_name}, queue={queue_name}")
        return True

    if request.headers.get("X-CloudScheduler") == "true":
        return True

    logger.warning("Request missing Cloud Tasks headers")
    return False


@router.post("/process", response_model=ProcessResponse)
async def process_task(
    request: Request,
    body: ProcessRequest,
    settings: Settings,
    processing_service: ProcessingServiceDep,
) -> ProcessResponse:
    """Run a processing job from Cloud Tasks.

    Redelivered tasks are safe: finished jobs are returned as they are and
    completed steps are not repeated.
    """
    if not await verify_cloud_tasks_request(request, settings):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized: not a valid Cloud Tasks request",
        )

    logger.info(f"Processing task: job_id={body.job_id}, user_id={body.user_id}")

    try:
        job = await processing_service.run_job(body.job_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return ProcessResponse(
        job_id=job.id,
        status=job.status.value,
        stage=job.progress.stage,
        progress=job.progress.percentage,
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_task(
    request: Request,
    settings: Settings,
    processing_service: ProcessingServiceDep,
) -> CleanupResponse:
    """Delete uploads and step outputs past the retention period."""
    if not await verify_cloud_tasks_request(request, settings):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Unauthorized: not a valid Cloud Tasks request",
        )

    result = await processing_service.cleanup_expired_artifacts()
    return CleanupResponse(**result)
