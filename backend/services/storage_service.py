"""Cloud Storage service for uploads and pipeline step artifacts.

Layout:
    uploads/{user_id}/{job_id}/watch-history.json   raw upload
    jobs/{job_id}/{artifact}.json                   step outputs
"""

import asyncio
import logging

from google.api_core.exceptions import NotFound
from google.cloud import storage

from backend.config import BackendSettings

logger = logging.getLogger(__name__)


class StorageService:
    """Service for reading and writing blobs in the configured GCS bucket.

    The storage client is synchronous, so calls run in a worker thread.
    """

    def __init__(self, settings: BackendSettings):
        self.settings = settings
        self._client: storage.Client | None = None

    @property
    def client(self) -> storage.Client:
        """Get or create Cloud Storage client."""
        if self._client is None:
            self._client = storage.Client(project=self.settings.google_cloud_project or None)
        return self._client

    @property
    def bucket(self) -> storage.Bucket:
        """Get the pipeline bucket."""
        return self.client.bucket(self.settings.gcs_bucket_name)

    @staticmethod
    def upload_path(user_id: str, job_id: str) -> str:
        """Path of a job's raw upload."""
        return f"uploads/{user_id}/{job_id}/watch-history.json"

    @staticmethod
    def artifact_path(job_id: str, artifact: str) -> str:
        """Path of a step output for a job."""
        return f"jobs/{job_id}/{artifact}.json"

    async def upload_bytes(self, path: str, data: bytes, content_type: str = "application/json") -> None:
        """Write a blob, replacing any existing content."""
        blob = self.bucket.blob(path)
        await asyncio.to_thread(blob.upload_from_string, data, content_type=content_type)
        logger.info(f"Uploaded gs://{self.settings.gcs_bucket_name}/{path} ({len(data)} bytes)")

    async def download_bytes(self, path: str) -> bytes | None:
        """Read a blob, or None if it does not exist."""
        blob = self.bucket.blob(path)
        try:
            data: bytes = await asyncio.to_thread(blob.download_as_bytes)
        except NotFound:
            return None
        return data

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every blob under a prefix.

        Returns:
            Number of blobs deleted.
        """

        def _delete() -> int:
            deleted = 0
            for blob in self.client.list_blobs(self.settings.gcs_bucket_name, prefix=prefix):
                try:
                    blob.delete()
                    deleted += 1
                except NotFound:
                    pass
            return deleted

        deleted = await asyncio.to_thread(_delete)
        if deleted:
            logger.info(f"Deleted {deleted} blobs under {prefix}")
        return deleted
