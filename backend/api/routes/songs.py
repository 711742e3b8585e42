"""Song metadata lookup routes.

Lookups spend YouTube Data API quota, so they require a signed-in user and,
for browser requests, an allowed Origin.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from backend.api.deps import CurrentUser, MetadataResolverDep, Settings, SongCacheDep, TrustedOrigin
from takeout_wrapped.core.models import ResolutionStats, SongMetadata

logger = logging.getLogger(__name__)

router = APIRouter()


class SongLookupRequest(BaseModel):
    """Request to resolve video ids to song metadata."""

    video_ids: list[str] = Field(min_length=1)


class SongLookupResponse(BaseModel):
    """Resolved songs keyed by video id."""

    songs: dict[str, SongMetadata]
    stats: ResolutionStats


@router.post("/lookup", response_model=SongLookupResponse, dependencies=[TrustedOrigin])
async def lookup_songs(
    body: SongLookupRequest,
    user: CurrentUser,
    settings: Settings,
    resolver: MetadataResolverDep,
) -> SongLookupResponse:
    """Resolve video ids to song metadata, using the shared cache first."""
    if len(body.video_ids) > settings.max_lookup_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many video ids (max {settings.max_lookup_ids})",
        )

    logger.info(f"Song lookup for user {user.id}: {len(body.video_ids)} ids")
    try:
        result = await resolver.resolve(body.video_ids)
    finally:
        await resolver.close()

    return SongLookupResponse(songs=result.songs, stats=result.stats)


@router.get("/cache/stats", response_model=dict[str, int])
async def get_cache_stats(
    user: CurrentUser,
    song_cache: SongCacheDep,
) -> dict[str, int]:
    """Count cached songs by how their duration was obtained."""
    return await song_cache.get_estimation_breakdown()
