"""
Voice Pipeline Service - FastAPI Application.

Thin HTTP trigger layer over the voice generation pipeline.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings, get_settings
from ..core.logging import setup_logging
from ..database import DatabaseManager
from ..exceptions import PipelineError
from ..pipeline import PipelineService
from ..storage import GCSStorage, ObjectStore
from ..voice import ElevenLabsClient, VoiceProviderClient
from .routes import router

logger = structlog.get_logger(__name__)


# =============================================================================
# Application State
# =============================================================================


class AppState:
    """Application state container."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.db: Optional[DatabaseManager] = None
        self.provider: Optional[VoiceProviderClient] = None
        self.object_store: Optional[ObjectStore] = None
        self.pipeline: Optional[PipelineService] = None
        self.start_time = time.time()

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def ready(self) -> bool:
        return self.pipeline is not None


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[DatabaseManager] = None,
    provider: Optional[VoiceProviderClient] = None,
    object_store: Optional[ObjectStore] = None,
    create_tables: bool = False,
) -> FastAPI:
    """
    Build the FastAPI application.

    Components not passed in are constructed from settings at start-up and
    closed at shutdown; injected components are left for the caller to close.
    """
    settings = settings or get_settings()
    state = AppState(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(
            level=settings.log_level,
            format=settings.resolved_log_format,
            service_name=settings.service_name,
        )

        owns_db = db is None
        owns_provider = provider is None

        state.db = db or DatabaseManager.from_settings(settings.database)
        if create_tables:
            await state.db.create_all()

        state.provider = provider or ElevenLabsClient.from_settings(settings.elevenlabs)
        state.object_store = object_store or GCSStorage.from_settings(settings.storage)
        state.pipeline = PipelineService(
            state.db,
            state.provider,
            settings,
            object_store=state.object_store,
        )

        logger.info(
            "voice_pipeline_starting",
            port=settings.port,
            environment=settings.environment,
            provider=state.provider.name,
        )

        try:
            yield
        finally:
            logger.info("voice_pipeline_stopping")
            if owns_provider:
                await state.provider.close()
            if owns_db:
                await state.db.close()
            state.pipeline = None

    app = FastAPI(
        title="Doctor Voice Pipeline",
        description="Voice cloning, per-language speech-to-speech generation and voice slot cleanup.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = state

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": settings.service_name,
            "version": __version__,
            "uptime_seconds": round(state.uptime_seconds, 2),
        }

    @app.get("/ready")
    async def readiness_check():
        """Readiness probe."""
        if not state.ready or not await state.db.health_check():
            raise HTTPException(status_code=503, detail="Service not ready")
        return {"status": "ready"}

    app.include_router(router)
    return app


def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
