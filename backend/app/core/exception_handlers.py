"""
FastAPI exception handlers.

WHY: Every failure leaves the API as the same JSON shape,
{error, message, status_code, details}, whether it is a lifecycle rule,
a numbering conflict, a request that failed validation or a bug. Server
side failures are logged with the request id so they can be matched to
the X-Request-ID the client received.
"""

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException
from app.middleware.request_context import get_request_context

logger = logging.getLogger(__name__)


def _error_response(
    error: str, message: Any, status_code: int, details: Optional[dict] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "status_code": status_code,
            "details": details,
        },
    )


def _describe(request: Request) -> str:
    ctx = get_request_context()
    suffix = f" (request_id={ctx.request_id})" if ctx else ""
    return f"{request.method} {request.url.path}{suffix}"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle AppException and its subclasses.

    WHY: Domain errors already know their status code and context;
    DocumentRenderError and other 5xx errors are also logged.
    """
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {_describe(request)}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors.

    WHAT: Negative quantities, unknown statuses, malformed dates and the
    like become 400 ValidationError with one entry per offending field.
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return _error_response("ValidationError", "Request validation failed", 400, {"errors": errors})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle routing errors and HTTPExceptions raised by FastAPI security."""
    return _error_response("HTTPException", exc.detail, exc.status_code)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected exceptions.

    WHY: The traceback is logged; the client gets a generic message so
    driver errors and SQL never leak into responses.
    """
    logger.exception(f"Unhandled error on {_describe(request)}", exc_info=exc)

    return _error_response("InternalServerError", "An unexpected error occurred", 500)
