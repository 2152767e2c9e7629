"""FastAPI application factory and configuration.

Hosts the submission proxy and the health check. The NiceGUI chat page is
mounted onto this application by ``datachat.main``.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from datachat.api.routes import router as process_router
from datachat.client.backend import BackendClient
from datachat.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings, loaded from the environment if omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Open the backend client on startup and close it on shutdown."""
        logger.info(f"Starting Data Analyst proxy for {settings.backend_url}...")
        app.state.backend = BackendClient.from_settings(settings)
        yield
        logger.info("Shutting down Data Analyst proxy...")
        await app.state.backend.aclose()

    application = FastAPI(
        title="Data Analyst Chat",
        description=(
            "Chat front end for a data-analysis assistant. Forwards prompts and "
            "data files to the analysis backend and streams progress and results "
            "back to the browser."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.settings = settings

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(process_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "datachat"}

    return application
