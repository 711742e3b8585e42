"""API routes for Takeout Wrapped."""

from fastapi import APIRouter

from backend.api.routes.health import router as health_router
from backend.api.routes.internal import router as internal_router
from backend.api.routes.process import router as process_router
from backend.api.routes.songs import router as songs_router
from backend.api.routes.stats import router as stats_router

router = APIRouter()

# Include all route modules
router.include_router(health_router, tags=["health"])
router.include_router(process_router, prefix="/process", tags=["process"])
router.include_router(stats_router, prefix="/stats", tags=["stats"])
router.include_router(songs_router, prefix="/songs", tags=["songs"])

# Internal routes (Cloud Tasks callbacks) - separate prefix outside /api
internal_api_router = internal_router
