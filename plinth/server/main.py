"""
Main Application Entry Point.

This module builds the FastAPI host: CORS, request timing, exception handling,
the health endpoints and the MVC front controller mounted at ``/``.

Run with ``uvicorn plinth.server.main:app``.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from plinth.core.logging_config import get_logger, setup_logging
from plinth.mvc.application import Application

from .api import health
from .core import constant
from .core.config import Settings, settings
from .exception_handlers import setup_exception_handlers
from .middleware import TimingMiddleware

logger = get_logger(__name__)


def create_app(application: Optional[Application] = None, config: Optional[Settings] = None) -> FastAPI:
    """
    Create the FastAPI host application.

    Args:
        application: The MVC front controller; built from the settings when omitted
        config: Server settings; the module-level ``settings`` by default

    Returns:
        The configured FastAPI application
    """
    config = config or settings
    mvc = application or Application(settings=config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifespan events.

        Logs startup and releases the front controller's database engines and
        log handlers on shutdown.
        """
        logger.info(f"Starting up {constant.PROJECT_NAME} {constant.VERSION} (modules: {mvc.get_modules()})")
        yield
        logger.info(f"Shutting down {constant.PROJECT_NAME}...")
        mvc.close()

    app = FastAPI(
        title=constant.PROJECT_NAME,
        description="Plinth MVC application server",
        version=constant.VERSION,
        openapi_url=f"{constant.API_PREFIX}/openapi.json",
        docs_url=f"{constant.API_PREFIX}/docs",
        redoc_url=f"{constant.API_PREFIX}/redoc",
        lifespan=lifespan,
    )

    cors = config.cors
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.origins,
        allow_credentials=cors.allow_credentials,
        allow_methods=cors.allow_methods,
        allow_headers=cors.allow_headers,
    )
    app.add_middleware(TimingMiddleware)
    setup_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    # Everything else goes to the front controller.
    app.mount("/", mvc)
    app.state.mvc = mvc
    return app


def __getattr__(name: str):
    # ``app`` is built on first access; the application directory must exist by then.
    if name == "app":
        setup_logging()
        global app
        app = create_app()
        return app
    raise AttributeError(name)
