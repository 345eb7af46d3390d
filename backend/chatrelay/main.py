"""
chatrelay application.

FastAPI application exposing provider routing, streaming chat and
conversation history over HTTP.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from chatrelay import __version__
from chatrelay.api import (
    chat_router,
    conversations_router,
    health_router,
    metrics_router,
    providers_router,
    settings_router,
)
from chatrelay.config import Settings, get_settings
from chatrelay.container import Container, build_container
from chatrelay.core import get_logger, setup_logging
from chatrelay.core.middleware import RequestContextMiddleware, setup_exception_handlers

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
        log_file=settings.log_file or None,
    )
    logger.info(
        "Starting chatrelay",
        data={"environment": settings.environment, "debug": settings.debug, "version": __version__},
    )

    # Containers injected before startup (tests) are owned by the caller
    container_created = False
    if getattr(app.state, "container", None) is None:
        app.state.container = build_container(settings)
        container_created = True

    yield

    logger.info("Shutting down chatrelay")
    if container_created:
        container: Container = app.state.container
        await container.aclose()


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or (container.settings if container else get_settings())

    app = FastAPI(
        title="chatrelay",
        description="LLM provider routing with conversation history and branching",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.container = container

    # Setup exception handlers (must be before middleware)
    setup_exception_handlers(app)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(providers_router, prefix="/api")
    app.include_router(chat_router, prefix="/api")
    app.include_router(conversations_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")

    return app


app = create_app()
