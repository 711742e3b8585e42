"""Listening statistics routes."""

from fastapi import APIRouter, HTTPException, status

from backend.api.deps import CurrentUser, ProcessingServiceDep
from takeout_wrapped.core.models import Statistics

router = APIRouter()


@router.get("", response_model=Statistics)
async def get_statistics(
    user: CurrentUser,
    processing_service: ProcessingServiceDep,
) -> Statistics:
    """Get the statistics computed from the user's latest upload."""
    statistics = await processing_service.get_user_statistics(user.id)
    if statistics is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No statistics available. Upload your watch history first.",
        )
    return statistics
