"""Error Handlers - global exception handlers for the platform API.

Invariants:
    - PlataformaError -> structured JSON with error code, message, severity
    - SecurityRejection -> plain-text body with its own status (403/429)
    - RequestValidationError -> field-level error details
    - Exception (catch-all) -> never leaks internal details
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from plataforma.core.errors import ErrorSeverity, PlataformaError, SecurityRejection

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_security_rejection_handler(app)
    _register_platform_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_security_rejection_handler(app: FastAPI) -> None:

    @app.exception_handler(SecurityRejection)
    async def security_rejection_handler(request: Request, exc: SecurityRejection):
        logger.info(
            f"Security rejection ({exc.reason}) on {request.url.path}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return PlainTextResponse(exc.body, status_code=exc.http_status)


def _register_platform_error_handler(app: FastAPI) -> None:
    """Register platform domain/infrastructure error handler."""

    @app.exception_handler(PlataformaError)
    async def platform_error_handler(request: Request, exc: PlataformaError):
        """Handle all platform domain/infrastructure errors."""
        logger.error(
            f"PlataformaError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_validation_error_handler(app: FastAPI) -> None:
    """Register Pydantic validation error handler."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:
    """Register catch-all error handler."""

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all - never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    """Build structured validation error response."""
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": "validation",
            "severity": ErrorSeverity.ERROR.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
