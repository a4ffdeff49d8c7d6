"""
Main entrypoint for the Messaging System API.

This module assembles the FastAPI application, sets up logging,
registers the error handlers and includes versioned routers.  The
``create_app`` function builds and configures the app, which is then
instantiated at module import time as ``app``, e.g.::

    uvicorn messaging_api.app.main:app --reload

The application title and version are provided via ``Settings`` from
``core.config``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db
from .core.errors import MessagingError
from .core.logging_config import setup_logging

logger = logging.getLogger(__name__)


async def messaging_error_handler(request: Request, exc: MessagingError) -> JSONResponse:
    """Render a service error as ``{"detail": ..., "code": ...}`` with its status code."""
    logger.info(
        "%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    # Logging first so that everything below can log
    setup_logging(settings)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)

    app.add_exception_handler(MessagingError, messaging_error_handler)

    app.include_router(v1_router, prefix="/api/v1")

    @app.get("/")
    async def root() -> dict:
        return {"message": "Messaging System API is running!"}

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.on_event("startup")
    async def startup_event() -> None:
        # Creates the database file if needed and brings the schema up to date
        init_db()
        logger.info("Database ready at %s", settings.database_url)

    return app


# Create the application instance at import time so that tools such as
# uvicorn can discover it without calling create_app manually.
app = create_app()
