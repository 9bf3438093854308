"""
FastAPI application factory.

Usage:
    from noconflict.server.app import create_app

    app = create_app()

Or run directly:
    uvicorn noconflict.server:app --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from noconflict import __version__
from noconflict.config import get_settings
from noconflict.exceptions import NoConflictError
from noconflict.server.routers import check, health, validate
from noconflict.server.schemas import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    get_settings()

    app = FastAPI(
        title="noconflict API",
        description="On-demand worker retention with mutual exclusion",
        version=__version__,
    )

    @app.exception_handler(NoConflictError)
    async def noconflict_error_handler(request: Request, exc: NoConflictError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message, details=exc.details)
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(code="internal_error", message="An internal error occurred")
            ).model_dump(),
        )

    app.include_router(health.router)
    app.include_router(validate.router)
    app.include_router(check.router)

    return app


# Default app instance for uvicorn
app = create_app()
