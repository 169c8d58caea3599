"""
Global Exception Handler for the FastAPI host.

Errors inside MVC requests are handled by the front controller and its error
controller. This handler covers whatever escapes the host's own routes and
middleware: it logs the error with its request context and answers with JSON
carrying an error id clients can quote.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from plinth.core.logging_config import get_logger
from plinth.errors import FrameworkError

logger = get_logger(__name__)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Log an unhandled exception and return a JSON error.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with error details and error ID
    """
    error_id = id(exc)
    status_code = exc.status_code if isinstance(exc, FrameworkError) else 500

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
        },
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": "Page not found" if status_code == 404 else "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")
