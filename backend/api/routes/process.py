"""Upload and processing status routes.

Users upload their Google Takeout watch-history.json here and poll the
resulting job until statistics are ready.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from backend.api.deps import CurrentUser, ProcessingServiceDep, Settings
from backend.models.processing_job import ProcessingJob
from takeout_wrapped.core.exceptions import InvalidExportError

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_EXPORT_DETAIL = "The uploaded file is not a valid Google Takeout watch history export"


# -----------------------------------------------------------------------------
# Response Models
# -----------------------------------------------------------------------------


class UploadResponse(BaseModel):
    """Response after an upload is accepted."""

    job_id: str
    status: str
    message: str


class JobSummaryResponse(BaseModel):
    """Counts gathered while processing."""

    total_entries: int
    music_entries: int
    parsed_events: int
    parse_errors: int
    songs_requested: int
    songs_cached: int
    songs_fetched: int
    songs_not_found: int


class JobStatusResponse(BaseModel):
    """Processing job status."""

    job_id: str
    status: str
    stage: str
    progress: int
    error: str | None = None
    summary: JobSummaryResponse
    created_at: str
    updated_at: str
    completed_at: str | None = None


def _to_status_response(job: ProcessingJob) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=job.id,
        status=job.status.value,
        stage=job.progress.stage,
        progress=job.progress.percentage,
        error=job.error,
        summary=JobSummaryResponse(
            total_entries=job.summary.total_entries,
            music_entries=job.summary.music_entries,
            parsed_events=job.summary.parsed_events,
            parse_errors=job.summary.parse_errors,
            songs_requested=job.summary.songs_requested,
            songs_cached=job.summary.songs_cached,
            songs_fetched=job.summary.songs_fetched,
            songs_not_found=job.summary.songs_not_found,
        ),
        created_at=job.created_at.isoformat(),
        updated_at=job.updated_at.isoformat(),
        completed_at=job.completed_at.isoformat() if job.completed_at else None,
    )


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@router.post("", response_model=UploadResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_history(
    request: Request,
    user: CurrentUser,
    settings: Settings,
    processing_service: ProcessingServiceDep,
) -> UploadResponse:
    """Upload a watch-history.json export and start processing it.

    The request body is the raw JSON file. Any earlier results for the user
    are discarded.
    """
    content = await request.body()

    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )

    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large (max {settings.max_upload_bytes // (1024 * 1024)} MB)",
        )

    try:
        job = await processing_service.create_job(user.id, content)
    except InvalidExportError as e:
        logger.info(f"Rejected upload from user {user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_EXPORT_DETAIL,
        )

    return UploadResponse(
        job_id=job.id,
        status=job.status.value,
        message="Upload received, processing started",
    )


@router.get("/status/latest", response_model=JobStatusResponse)
async def get_latest_status(
    user: CurrentUser,
    processing_service: ProcessingServiceDep,
) -> JobStatusResponse:
    """Get the status of the user's most recent upload."""
    job = await processing_service.get_latest_job(user.id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No uploads found",
        )
    return _to_status_response(job)


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    user: CurrentUser,
    processing_service: ProcessingServiceDep,
) -> JobStatusResponse:
    """Get the status of a processing job owned by the user."""
    job = await processing_service.get_job(job_id)
    if job is None or job.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )
    return _to_status_response(job)
