"""FastAPI application for Takeout Wrapped."""

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.api.routes import internal_api_router, router
from backend.config import get_backend_settings

# Configure logging to output to stdout for Cloud Run
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_backend_settings()
    logger.info(f"Starting Takeout Wrapped API ({settings.environment}, chunk size {settings.chunk_size})")

    yield

    logger.info("Shutting down Takeout Wrapped API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_backend_settings()

    app = FastAPI(
        title="Takeout Wrapped API",
        description="Listening statistics from your Google Takeout YouTube Music history",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted({settings.frontend_url, *settings.allowed_origins}),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(router, prefix="/api")

    # Include internal routes (for Cloud Tasks callbacks)
    app.include_router(internal_api_router, prefix="/internal", tags=["internal"])

    return app


app = create_app()
