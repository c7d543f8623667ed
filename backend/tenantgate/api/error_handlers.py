"""Error Handlers - global exception handlers for the tenantgate API.

Invariants:
    - TenantGateError -> structured JSON with error code, message, severity
    - RequestValidationError -> field-level error details
    - Exception (catch-all) -> never leaks internal details

Design Decisions:
    - Three-layer handler: domain (TenantGateError), validation (Pydantic), catch-all (Exception)
    - Recoverable domain errors (info/warning severity) log at warning, the rest at error
    - Errors carrying retry_after_ms (resend cooldowns) answer with a Retry-After header
    - The request path is stamped into the error context when the raiser left it empty
"""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tenantgate.core.errors import ErrorSeverity, TenantGateError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_domain_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_domain_error_handler(app: FastAPI) -> None:

    @app.exception_handler(TenantGateError)
    async def tenantgate_error_handler(request: Request, exc: TenantGateError):
        """Handle all tenantgate domain/infrastructure errors."""
        if exc.context.path is None:
            exc.context.path = request.url.path
        log = logger.warning if exc.recoverable else logger.error
        log(
            f"TenantGateError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_response(),
            headers=_retry_after_headers(exc),
        )


def _retry_after_headers(exc: TenantGateError) -> dict[str, str] | None:
    """Cooldown errors carry retry_after_ms; clients get it as whole seconds."""
    retry_after_ms = exc.context.retry_after_ms
    if not retry_after_ms or retry_after_ms <= 0:
        return None
    return {"Retry-After": str(math.ceil(retry_after_ms / 1000))}


def _register_validation_error_handler(app: FastAPI) -> None:

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
