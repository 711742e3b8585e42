"""Tests for internal Cloud Tasks routes."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from backend.config import BackendSettings

TEST_USER_ID = "user_abc123def456"
CLOUD_TASKS_HEADERS = {
    "X-CloudTasks-TaskName": "task-1",
    "X-CloudTasks-QueueName": "takeout-processing-queue",
}


def _upload(client: TestClient, auth_headers: dict[str, str], sample_export: bytes) -> str:
    response = client.post("/api/process", content=sample_export, headers=auth_headers)
    job_id: str = response.json()["job_id"]
    return job_id


class TestProcessTask:
    """Tests for POST /internal/process."""

    def test_runs_job(self, client: TestClient, auth_headers: dict[str, str], sample_export: bytes) -> None:
        job_id = _upload(client, auth_headers, sample_export)

        response = client.post("/internal/process", json={"job_id": job_id, "user_id": TEST_USER_ID})

        assert response.status_code == 200
        assert response.json() == {
            "job_id": job_id,
            "status": "completed",
            "stage": "completed",
            "progress": 100,
        }

    def test_redelivery_returns_finished_job(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        sample_export: bytes,
        mock_storage_service: MagicMock,
    ) -> None:
        """Test a redelivered task does not run the pipeline again."""
        job_id = _upload(client, auth_headers, sample_export)
        client.post("/internal/process", json={"job_id": job_id, "user_id": TEST_USER_ID})
        downloads = mock_storage_service.download_bytes.await_count

        response = client.post("/internal/process", json={"job_id": job_id, "user_id": TEST_USER_ID})

        assert response.json()["status"] == "completed"
        assert mock_storage_service.download_bytes.await_count == downloads

    def test_unknown_job(self, client: TestClient) -> None:
        response = client.post("/internal/process", json={"job_id": "missing", "user_id": TEST_USER_ID})
        assert response.status_code == 404

    def test_production_requires_cloud_tasks_headers(
        self,
        client: TestClient,
        mock_backend_settings: BackendSettings,
    ) -> None:
        mock_backend_settings.environment = "production"

        response = client.post("/internal/process", json={"job_id": "job_1", "user_id": TEST_USER_ID})

        assert response.status_code == 403

    def test_production_accepts_cloud_tasks_headers(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        sample_export: bytes,
        mock_backend_settings: BackendSettings,
    ) -> None:
        job_id = _upload(client, auth_headers, sample_export)
        mock_backend_settings.environment = "production"

        response = client.post(
            "/internal/process",
            json={"job_id": job_id, "user_id": TEST_USER_ID},
            headers=CLOUD_TASKS_HEADERS,
        )

        assert response.status_code == 200


class TestCleanupTask:
    """Tests for POST /internal/cleanup."""

    def test_removes_expired_artifacts(
        self,
        client: TestClient,
        auth_headers: dict[str, str],
        sample_export: bytes,
        mock_firestore_service: MagicMock,
        mock_storage_service: MagicMock,
    ) -> None:
        """Test uploads past the retention period are deleted."""
        job_id = _upload(client, auth_headers, sample_export)
        client.post("/internal/process", json={"job_id": job_id, "user_id": TEST_USER_ID})
        expired = (datetime.now(UTC) - timedelta(days=30)).isoformat()
        mock_firestore_service.collections["processing_jobs"][job_id]["created_at"] = expired

        response = client.post("/internal/cleanup")

        assert response.status_code == 200
        assert response.json()["jobs_cleaned"] == 1
        assert not [path for path in mock_storage_service.blobs if job_id in path]

    def test_nothing_to_clean(self, client: TestClient) -> None:
        response = client.post("/internal/cleanup")

        assert response.status_code == 200
        assert response.json() == {"jobs_cleaned": 0, "blobs_deleted": 0}

    def test_production_accepts_scheduler_header(
        self, client: TestClient, mock_backend_settings: BackendSettings
    ) -> None:
        mock_backend_settings.environment = "production"

        response = client.post("/internal/cleanup", headers={"X-CloudScheduler": "true"})

        assert response.status_code == 200
