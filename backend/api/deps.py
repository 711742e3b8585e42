"""Dependency injection for API routes."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.config import BackendSettings, get_backend_settings
from backend.services.auth_service import AuthenticatedUser, AuthService, get_auth_service
from backend.services.cloud_tasks_service import get_cloud_tasks_service
from backend.services.firestore_service import FirestoreService
from backend.services.processing_service import ProcessingService
from backend.services.song_cache_service import SongCacheService
from backend.services.storage_service import StorageService
from takeout_wrapped.core.exceptions import AuthenticationError, AuthorizationError
from takeout_wrapped.services.metadata_resolver import MetadataResolver

# Security scheme
security = HTTPBearer(auto_error=False)

_firestore_service: FirestoreService | None = None
_storage_service: StorageService | None = None


async def get_settings() -> BackendSettings:
    """Get application settings."""
    return get_backend_settings()


async def get_firestore(settings: Annotated[BackendSettings, Depends(get_settings)]) -> FirestoreService:
    """Get the shared Firestore service."""
    global _firestore_service
    if _firestore_service is None:
        _firestore_service = FirestoreService(settings)
    return _firestore_service


async def get_storage(settings: Annotated[BackendSettings, Depends(get_settings)]) -> StorageService:
    """Get the shared Cloud Storage service."""
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService(settings)
    return _storage_service


async def get_auth(settings: Annotated[BackendSettings, Depends(get_settings)]) -> AuthService:
    """Get the auth service."""
    return get_auth_service(settings)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    auth_service: Annotated[AuthService, Depends(get_auth)],
) -> AuthenticatedUser:
    """Get the current authenticated user from the JWT token.

    Raises:
        HTTPException: If not authenticated or token is invalid.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return auth_service.get_user_from_token(credentials.credentials)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_trusted_origin(
    request: Request,
    auth_service: Annotated[AuthService, Depends(get_auth)],
) -> None:
    """Reject browser requests from origins other than our frontend.

    Raises:
        HTTPException: 403 if the Origin header is not allowed.
    """
    try:
        auth_service.require_allowed_origin(request.headers.get("origin"))
    except AuthorizationError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )


async def get_song_cache(firestore: Annotated[FirestoreService, Depends(get_firestore)]) -> SongCacheService:
    """Get the Firestore song cache."""
    return SongCacheService(firestore)


async def get_metadata_resolver(
    settings: Annotated[BackendSettings, Depends(get_settings)],
    song_cache: Annotated[SongCacheService, Depends(get_song_cache)],
) -> MetadataResolver:
    """Get a metadata resolver backed by the Firestore cache."""
    return MetadataResolver.from_settings(settings, song_cache)


async def get_processing_service(
    settings: Annotated[BackendSettings, Depends(get_settings)],
    firestore: Annotated[FirestoreService, Depends(get_firestore)],
    storage: Annotated[StorageService, Depends(get_storage)],
) -> ProcessingService:
    """Get the processing service."""
    return ProcessingService(
        settings=settings,
        firestore=firestore,
        storage=storage,
        cloud_tasks=get_cloud_tasks_service(settings),
    )


# Type aliases for cleaner route signatures
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
TrustedOrigin = Depends(require_trusted_origin)
Settings = Annotated[BackendSettings, Depends(get_settings)]
FirestoreServiceDep = Annotated[FirestoreService, Depends(get_firestore)]
SongCacheDep = Annotated[SongCacheService, Depends(get_song_cache)]
MetadataResolverDep = Annotated[MetadataResolver, Depends(get_metadata_resolver)]
ProcessingServiceDep = Annotated[ProcessingService, Depends(get_processing_service)]
