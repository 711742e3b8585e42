"""Health check endpoints."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from backend.api.deps import FirestoreServiceDep, Settings

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthCheckResponse(BaseModel):
    """Basic health check response."""

    status: str
    service: str


class DeepHealthCheckResponse(BaseModel):
    """Deep health check response with component status."""

    status: str
    service: str
    timestamp: str
    checks: dict[str, dict[str, Any]]


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint for load balancers and monitoring."""
    return HealthCheckResponse(status="healthy", service="takeout-wrapped")


@router.get("/health/deep", response_model=DeepHealthCheckResponse)
async def deep_health_check(
    firestore: FirestoreServiceDep,
    settings: Settings,
) -> DeepHealthCheckResponse:
    """Deep health check that validates connectivity to infrastructure components.

    Checks:
    - Firestore: Can count processing jobs
    - Cloud Storage: Bucket is accessible
    - Cloud Tasks: Queue is accessible

    Does not require authentication since it only tests connectivity, not user data.
    """
    checks: dict[str, dict[str, Any]] = {}
    overall_healthy = True

    try:
        count = await firestore.count_documents("processing_jobs", filters=[])
        checks["firestore"] = {
            "status": "healthy",
            "message": f"Connected, {count} processing jobs in database",
        }
    except Exception as e:
        logger.error(f"Firestore health check failed: {e}")
        checks["firestore"] = {"status": "unhealthy", "error": str(e)}
        overall_healthy = False

    try:
        from google.cloud import storage

        client = storage.Client(project=settings.google_cloud_project or None)
        bucket = await asyncio.to_thread(client.get_bucket, settings.gcs_bucket_name)
        checks["storage"] = {
            "status": "healthy",
            "message": f"Bucket '{bucket.name}' accessible",
        }
    except Exception as e:
        logger.error(f"Cloud Storage health check failed: {e}")
        checks["storage"] = {"status": "unhealthy", "error": str(e)}
        overall_healthy = False

    try:
        from google.cloud import tasks_v2

        tasks_client = tasks_v2.CloudTasksClient()
        queue_path = tasks_client.queue_path(
            settings.google_cloud_project,
            settings.cloud_tasks_location,
            settings.cloud_tasks_queue,
        )
        queue = tasks_client.get_queue(name=queue_path)
        checks["cloud_tasks"] = {
            "status": "healthy",
            "message": f"Queue '{queue.name}' accessible",
        }
    except Exception as e:
        logger.error(f"Cloud Tasks health check failed: {e}")
        checks["cloud_tasks"] = {"status": "unhealthy", "error": str(e)}
        overall_healthy = False

    return DeepHealthCheckResponse(
        status="healthy" if overall_healthy else "degraded",
        service="takeout-wrapped",
        timestamp=datetime.now(UTC).isoformat(),
        checks=checks,
    )
