"""Cloud Tasks queueing of processing jobs.

Each uploaded export becomes one task that POSTs the job to
/internal/process. Cloud Tasks delivers at least once and retries failed
deliveries, so the processing endpoint must be idempotent.
"""

import json
import logging
import threading
from typing import Any

from google.cloud import tasks_v2
from google.protobuf import duration_pb2

from backend.config import BackendSettings

logger = logging.getLogger(__name__)


class CloudTasksService:
    """Queue processing jobs on Cloud Tasks."""

    PROCESS_ENDPOINT = "/internal/process"

    def __init__(self, settings: BackendSettings):
        self.settings = settings
        self.project = settings.google_cloud_project
        self.location = settings.cloud_tasks_location
        self.queue = settings.cloud_tasks_queue
        self._client: tasks_v2.CloudTasksClient | None = None
        self._client_lock = threading.Lock()

    @property
    def client(self) -> tasks_v2.CloudTasksClient:
        """Get or create Cloud Tasks client (thread-safe)."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = tasks_v2.CloudTasksClient()
        return self._client

    @property
    def service_url(self) -> str:
        """Base URL the queue delivers to, localhost outside Cloud Run."""
        return self.settings.cloud_run_url or f"http://localhost:{self.settings.api_port}"

    def create_processing_task(self, job_id: str, user_id: str) -> str:
        """Queue a processing job.

        Args:
            job_id: Processing job ID.
            user_id: Owner of the job.

        Returns:
            Task name.
        """
        request = tasks_v2.CreateTaskRequest(
            parent=self.client.queue_path(self.project, self.location, self.queue),
            task=self._build_task(job_id, user_id),
        )
        response = self.client.create_task(request=request)
        logger.info(f"Queued processing job {job_id} for user {user_id}: {response.name}")
        return response.name

    def _build_task(self, job_id: str, user_id: str) -> dict[str, Any]:
        http_request: dict[str, Any] = {
            "http_method": tasks_v2.HttpMethod.POST,
            "url": f"{self.service_url}{self.PROCESS_ENDPOINT}",
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps({"job_id": job_id, "user_id": user_id}).encode(),
        }

        # Cloud Run only accepts tasks signed as the default compute service account
        if self.settings.is_production:
            http_request["oidc_token"] = {
                "service_account_email": f"{self._get_project_number()}-compute@developer.gserviceaccount.com",
                "audience": self.service_url,
            }

        # Large exports take longer than the 10 minute default to process
        return {
            "http_request": http_request,
            "dispatch_deadline": duration_pb2.Duration(seconds=self.settings.task_dispatch_deadline_seconds),
        }

    def _get_project_number(self) -> str:
        if self.settings.google_cloud_project_number:
            return self.settings.google_cloud_project_number
        raise ValueError("GOOGLE_CLOUD_PROJECT_NUMBER must be set in production for Cloud Tasks OIDC auth")


_cloud_tasks_service: CloudTasksService | None = None
_cloud_tasks_lock = threading.Lock()


def get_cloud_tasks_service(settings: BackendSettings | None = None) -> CloudTasksService:
    """Get the shared Cloud Tasks service. Settings are only used on first call."""
    global _cloud_tasks_service

    if _cloud_tasks_service is None:
        with _cloud_tasks_lock:
            if _cloud_tasks_service is None:
                if settings is None:
                    from backend.config import get_backend_settings

                    settings = get_backend_settings()
                _cloud_tasks_service = CloudTasksService(settings)

    return _cloud_tasks_service
