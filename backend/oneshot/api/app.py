"""FastAPI application setup with lifespan and exception handlers."""

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from oneshot import __version__, validate_dependencies
from oneshot.config import settings
from oneshot.api.routes import router
from oneshot.orchestrator.run_registry import RunRegistry
from oneshot.services.artifact_store import ArtifactStore
from oneshot.services.providers import GenerationServices, build_generation_services
from oneshot.tracing import configure_tracing

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[ArtifactStore] = None,
    services: Optional[GenerationServices] = None,
) -> FastAPI:
    """Build the API application.

    Args:
        store: Project storage. Defaults to settings.storage.projects_dir.
        services: Generation providers. Built from settings at startup when
            omitted, and closed at shutdown only in that case.
    """
    configure_tracing()
    store = store or ArtifactStore()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        Startup:
            - Check ffmpeg (warning only; step 6 fails on its own without it)
            - Build generation providers

        Shutdown:
            - Close provider HTTP clients
        """
        logger.info("Starting oneshot API...")
        try:
            validate_dependencies()
        except RuntimeError as e:
            logger.warning(str(e))

        owns_services = app.state.services is None
        if owns_services:
            app.state.services = build_generation_services()
        logger.info(f"Serving projects from {store.base_dir}")

        yield

        logger.info("Shutting down oneshot API...")
        if owns_services:
            await app.state.services.aclose()
            app.state.services = None
        logger.info("API shutdown complete")

    app = FastAPI(
        title="Oneshot Studio API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.registry = RunRegistry()
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    # Generated images and videos, e.g. /media/{id}/keyframe0.jpg
    app.mount("/media", StaticFiles(directory=str(store.base_dir)), name="media")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler to prevent stack traces in API responses."""
        logger.error(f"Unhandled exception in {request.method} {request.url.path}: {type(exc).__name__}: {str(exc)}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return app
