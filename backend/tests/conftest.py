"""Shared test fixtures for backend tests."""

import copy
import json
from collections import defaultdict
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from backend.config import BackendSettings
from backend.services.processing_service import ProcessingService
from backend.services.storage_service import StorageService

TEST_JWT_SECRET = "test-jwt-secret-key-for-testing-only"
TEST_USER_ID = "user_abc123def456"


def _matches(data: dict[str, Any], filters: list[tuple[str, str, Any]] | None) -> bool:
    for field, op, value in filters or []:
        current = data.get(field)
        if op == "==" and current != value:
            return False
        if op == "<" and (current is None or not current < value):
            return False
    return True


@pytest.fixture
def mock_backend_settings() -> BackendSettings:
    """Create backend settings for testing."""
    return BackendSettings(
        environment="development",
        google_cloud_project="test-project",
        jwt_secret=TEST_JWT_SECRET,
        jwt_algorithm="HS256",
        frontend_url="http://localhost:3000",
        allowed_origins=["http://localhost:3000"],
        youtube_api_key="",
        step_retry_delay_seconds=0,
        processing_capability="capable",
    )


@pytest.fixture
def mock_firestore_service() -> MagicMock:
    """Create a Firestore service mock backed by an in-memory dict.

    Stored documents are available as `mock.collections[name][doc_id]`.
    """
    collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)

    async def get_document(collection: str, doc_id: str) -> dict[str, Any] | None:
        data = collections[collection].get(doc_id)
        return {"id": doc_id, **copy.deepcopy(data)} if data is not None else None

    async def get_documents(collection: str, doc_ids: list[str]) -> dict[str, dict[str, Any]]:
        return {
            doc_id: {"id": doc_id, **copy.deepcopy(collections[collection][doc_id])}
            for doc_id in doc_ids
            if doc_id in collections[collection]
        }

    async def set_document(collection: str, doc_id: str, data: dict[str, Any]) -> None:
        collections[collection][doc_id] = copy.deepcopy(data)

    async def update_document(collection: str, doc_id: str, data: dict[str, Any]) -> None:
        collections[collection][doc_id].update(copy.deepcopy(data))

    async def delete_document(collection: str, doc_id: str) -> None:
        collections[collection].pop(doc_id, None)

    async def query_documents(
        collection: str,
        filters: list[tuple[str, str, Any]] | None = None,
        **kwargs: Any,
    ) -> list[dict[str, Any]]:
        return [
            {"id": doc_id, **copy.deepcopy(data)}
            for doc_id, data in collections[collection].items()
            if _matches(data, filters)
        ]

    async def count_documents(collection: str, filters: list[tuple[str, str, Any]] | None = None) -> int:
        return sum(1 for data in collections[collection].values() if _matches(data, filters))

    mock = MagicMock()
    mock.collections = collections
    mock.get_document = AsyncMock(side_effect=get_document)
    mock.get_documents = AsyncMock(side_effect=get_documents)
    mock.set_document = AsyncMock(side_effect=set_document)
    mock.update_document = AsyncMock(side_effect=update_document)
    mock.delete_document = AsyncMock(side_effect=delete_document)
    mock.query_documents = AsyncMock(side_effect=query_documents)
    mock.count_documents = AsyncMock(side_effect=count_documents)
    return mock


@pytest.fixture
def mock_storage_service() -> MagicMock:
    """Create a Cloud Storage service mock backed by an in-memory dict.

    Stored blobs are available as `mock.blobs[path]`.
    """
    blobs: dict[str, bytes] = {}

    async def upload_bytes(path: str, data: bytes, content_type: str = "application/json") -> None:
        blobs[path] = bytes(data)

    async def download_bytes(path: str) -> bytes | None:
        return blobs.get(path)

    async def delete_prefix(prefix: str) -> int:
        paths = [path for path in blobs if path.startswith(prefix)]
        for path in paths:
            del blobs[path]
        return len(paths)

    mock = MagicMock()
    mock.blobs = blobs
    mock.upload_path = StorageService.upload_path
    mock.artifact_path = StorageService.artifact_path
    mock.upload_bytes = AsyncMock(side_effect=upload_bytes)
    mock.download_bytes = AsyncMock(side_effect=download_bytes)
    mock.delete_prefix = AsyncMock(side_effect=delete_prefix)
    return mock


@pytest.fixture
def mock_cloud_tasks_service() -> MagicMock:
    """Create a mock Cloud Tasks service."""
    mock = MagicMock()
    mock.create_processing_task.return_value = "projects/test-project/locations/us-central1/queues/q/tasks/1"
    return mock


@pytest.fixture
def processing_service(
    mock_backend_settings: BackendSettings,
    mock_firestore_service: MagicMock,
    mock_storage_service: MagicMock,
    mock_cloud_tasks_service: MagicMock,
) -> ProcessingService:
    """Create a processing service over the in-memory mocks.

    No YouTube API key is configured, so metadata comes from the cache only.
    """
    return ProcessingService(
        settings=mock_backend_settings,
        firestore=mock_firestore_service,
        storage=mock_storage_service,
        cloud_tasks=mock_cloud_tasks_service,
    )


@pytest.fixture
def sample_export() -> bytes:
    """A small watch-history.json export with three music plays."""
    records = [
        {
            "header": "YouTube Music",
            "title": "Watched Song Name",
            "titleUrl": "https://music.youtube.com/watch?v=vid00000001",
            "subtitles": [{"name": "Real Artist - Topic", "url": "https://www.youtube.com/channel/UC1"}],
            "time": "2024-01-15T09:00:00.000Z",
            "products": ["YouTube"],
        },
        {
            "header": "YouTube Music",
            "title": "Watched Song Name",
            "titleUrl": "https://music.youtube.com/watch?v=vid00000001",
            "subtitles": [{"name": "Real Artist - Topic", "url": "https://www.youtube.com/channel/UC1"}],
            "time": "2024-01-15T09:04:00.000Z",
            "products": ["YouTube"],
        },
        {
            "header": "YouTube Music",
            "title": "Watched Queen - Bohemian Rhapsody (Official Video)",
            "titleUrl": "https://music.youtube.com/watch?v=fJ9rUzIMcZQ",
            "time": "2024-01-16T20:00:00.000Z",
            "products": ["YouTube"],
        },
        {
            "header": "YouTube",
            "title": "Watched Some Vlog",
            "titleUrl": "https://www.youtube.com/watch?v=abcdefghijk",
            "time": "2024-01-16T21:00:00.000Z",
            "products": ["YouTube"],
        },
    ]
    return json.dumps(records).encode()


@pytest.fixture
def auth_token() -> str:
    """Create a valid session token for the test user."""
    return jwt.encode(
        {
            "sub": TEST_USER_ID,
            "email": "test@example.com",
            "exp": datetime.now(UTC) + timedelta(hours=1),
        },
        TEST_JWT_SECRET,
        algorithm="HS256",
    )


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Authorization headers for the test user."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def client(
    mock_backend_settings: BackendSettings,
    mock_firestore_service: MagicMock,
    mock_storage_service: MagicMock,
    processing_service: ProcessingService,
) -> Generator[TestClient, None, None]:
    """Create test client with settings and Google Cloud services overridden."""
    from backend.api import deps
    from backend.main import app

    async def get_settings_override() -> BackendSettings:
        return mock_backend_settings

    async def get_firestore_override() -> MagicMock:
        return mock_firestore_service

    async def get_storage_override() -> MagicMock:
        return mock_storage_service

    async def get_processing_service_override() -> ProcessingService:
        return processing_service

    app.dependency_overrides[deps.get_settings] = get_settings_override
    app.dependency_overrides[deps.get_firestore] = get_firestore_override
    app.dependency_overrides[deps.get_storage] = get_storage_override
    app.dependency_overrides[deps.get_processing_service] = get_processing_service_override

    yield TestClient(app)

    app.dependency_overrides.clear()
