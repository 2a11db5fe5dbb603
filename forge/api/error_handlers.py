"""Error handlers for API routes.

Provides a consistent error response format across all API endpoints.

Status mapping:
- BriefNotFoundError           -> 404
- BriefInFlightError           -> 409
- BriefStateError              -> 409
- RequestValidationError       -> 422
- any other ForgeError         -> 500
- anything else                -> 500
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from forge.core.exceptions import BriefInFlightError, BriefNotFoundError, BriefStateError, ForgeError


logger = logging.getLogger(__name__)


# Type alias for exception handler
ExceptionHandler = Callable[[Request, Exception], Awaitable[JSONResponse]]


# =============================================================================
# Error Response Model
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response model.

    Attributes:
        error: Error type/category
        detail: Human-readable error description
        code: Optional machine-readable error code
        path: Optional request path that caused the error
    """

    error: str = Field(
        ...,
        description="Error type or category",
    )
    detail: str = Field(
        ...,
        description="Human-readable error description",
    )
    code: str | None = Field(
        default=None,
        description="Machine-readable error code",
    )
    path: str | None = Field(
        default=None,
        description="Request path that caused the error",
    )


def _error(request: Request, status_code: int, error: str, detail: str, code: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            code=code,
            path=str(request.url.path),
        ).model_dump(),
    )


# =============================================================================
# Exception Handlers
# =============================================================================

async def http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Handle HTTPException with ErrorResponse schema."""
    error_type = {
        400: "BadRequest",
        404: "NotFound",
        409: "Conflict",
        422: "ValidationError",
        500: "InternalServerError",
        503: "ServiceUnavailable",
    }.get(exc.status_code, "Error")

    return _error(request, exc.status_code, error_type, str(exc.detail))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle Pydantic validation errors.

    Args:
        request: FastAPI request object
        exc: RequestValidationError raised

    Returns:
        JSONResponse with ErrorResponse format and field details
    """
    field_errors = []
    for error in exc.errors():
        loc = ".".join(str(x) for x in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        field_errors.append(f"{loc}: {msg}")

    detail = "; ".join(field_errors) if field_errors else "Validation error"
    return _error(request, 422, "ValidationError", detail, "VALIDATION_ERROR")


async def brief_not_found_handler(
    request: Request,
    exc: BriefNotFoundError,
) -> JSONResponse:
    return _error(request, 404, "NotFound", f"Brief '{exc.brief_id}' not found", "BRIEF_NOT_FOUND")


async def brief_in_flight_handler(
    request: Request,
    exc: BriefInFlightError,
) -> JSONResponse:
    return _error(
        request,
        409,
        "Conflict",
        f"Brief '{exc.brief_id}' already has an active pipeline",
        "BRIEF_IN_FLIGHT",
    )


async def brief_state_handler(
    request: Request,
    exc: BriefStateError,
) -> JSONResponse:
    return _error(
        request,
        409,
        "Conflict",
        f"Brief '{exc.brief_id}' is in '{exc.actual}', expected '{exc.expected}'",
        "BRIEF_STATE_CONFLICT",
    )


async def forge_error_handler(
    request: Request,
    exc: ForgeError,
) -> JSONResponse:
    """Handle pipeline errors that escaped the state machine.

    Returns:
        JSONResponse with 500 status
    """
    logger.error(
        "Pipeline error",
        extra={
            "path": str(request.url.path),
            "error_type": type(exc).__name__,
            "agent": exc.agent_name,
            "error": str(exc),
        },
    )
    return _error(request, 500, type(exc).__name__, str(exc), "PIPELINE_ERROR")


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={
            "path": str(request.url.path),
            "error_type": type(exc).__name__,
        },
    )
    return _error(request, 500, "InternalServerError", "An unexpected error occurred", "INTERNAL_ERROR")


# =============================================================================
# Registration Function
# =============================================================================

def register_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(
        HTTPException,
        http_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        BriefNotFoundError,
        brief_not_found_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        BriefInFlightError,
        brief_in_flight_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        BriefStateError,
        brief_state_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ForgeError,
        forge_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        Exception,
        generic_exception_handler,
    )


__all__ = [
    "ErrorResponse",
    "register_error_handlers",
]
