"""Global error handlers for the FastAPI application.

This module converts orchestration exceptions into the standard error
envelope with an appropriate HTTP status code.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from .exceptions import (
    APIError,
    ApprovalExpiredError,
    InvalidStateError,
    NotFoundError,
    OrchestrationError,
)
from .logging import get_logger

logger = get_logger(__name__)


def create_error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        status_code: HTTP status code
        error: Error type/code
        message: Human-readable error message
        details: Optional additional error details
        request_id: Optional request ID for tracing

    Returns:
        JSONResponse with error information
    """
    content: dict[str, Any] = {
        "success": False,
        "error": {
            "code": error,
            "message": message,
        },
    }

    if details:
        content["error"]["details"] = details

    if request_id:
        content["metadata"] = {"request_id": request_id}

    return JSONResponse(status_code=status_code, content=content)


def _domain_response(
    request: Request, exc: OrchestrationError, status_code: int
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request failed",
        error=exc.__class__.__name__,
        message=exc.message,
        status_code=status_code,
        details=exc.details,
        request_id=request_id,
        path=str(request.url.path),
    )
    return create_error_response(
        status_code=status_code,
        error=exc.__class__.__name__,
        message=exc.message,
        details=exc.details if exc.details else None,
        request_id=request_id,
    )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with their own status code."""
    return _domain_response(request, exc, exc.status_code)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _domain_response(request, exc, 404)


async def conflict_handler(request: Request, exc: OrchestrationError) -> JSONResponse:
    """Handle invalid state transitions and expired approvals (409)."""
    return _domain_response(request, exc, 409)


async def orchestration_error_handler(
    request: Request, exc: OrchestrationError
) -> JSONResponse:
    """Handle any other OrchestrationError as a server error."""
    return _domain_response(request, exc, 500)


async def validation_error_handler(
    request: Request, exc: RequestValidationError | PydanticValidationError
) -> JSONResponse:
    """Handle request and model validation errors.

    Args:
        request: FastAPI request
        exc: Validation exception

    Returns:
        Standardized JSON error response with validation details
    """
    request_id = getattr(request.state, "request_id", None)

    errors = [
        {
            "field": ".".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation error",
        errors=errors,
        request_id=request_id,
        path=str(request.url.path),
    )

    return create_error_response(
        status_code=422,
        error="ValidationError",
        message="Request validation failed",
        details={"validation_errors": errors},
        request_id=request_id,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: FastAPI request
        exc: Any exception

    Returns:
        Generic 500 error response
    """
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unexpected error occurred",
        error=exc.__class__.__name__,
        message=str(exc),
        request_id=request_id,
        path=str(request.url.path),
    )

    return create_error_response(
        status_code=500,
        error="InternalServerError",
        message="An unexpected error occurred",
        request_id=request_id,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    # Starlette resolves handlers by walking the exception's MRO
    app.add_exception_handler(APIError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidStateError, conflict_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ApprovalExpiredError, conflict_handler)  # type: ignore[arg-type]
    app.add_exception_handler(OrchestrationError, orchestration_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(PydanticValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Error handlers registered")
