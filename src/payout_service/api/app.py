from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from payout_service.api.http_handlers import ADMIN_PREFIX, admin_router, seller_router
from payout_service.api.middleware import MetricsMiddleware, RateLimitMiddleware, RequestContextMiddleware
from payout_service.domain.exceptions import (
    DomainError,
    ForbiddenError,
    InsufficientBalanceError,
    LedgerIntegrityError,
    NotFoundError,
    PayoutValidationError,
    StoreFailureError,
    UnauthorizedError,
)
from payout_service.infrastructure.database import Database
from payout_service.infrastructure.rate_limiter import SlidingWindowRateLimiter
from payout_service.infrastructure.security import TokenVerifier


logger = structlog.get_logger()

STATUS_CODES: dict[type[DomainError], int] = {
    UnauthorizedError: 401,
    ForbiddenError: 403,
    PayoutValidationError: 400,
    InsufficientBalanceError: 400,
    NotFoundError: 404,
    StoreFailureError: 500,
    LedgerIntegrityError: 500,
}

INTERNAL_ERROR_MESSAGE = "An internal error occurred while processing the payout request"


def status_code_for(exc: DomainError) -> int:
    for exc_type in type(exc).__mro__:
        if exc_type in STATUS_CODES:
            return STATUS_CODES[exc_type]
    return 500


def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: dict[str, str] | None = None,
) -> JSONResponse:
    """Admin routes report ``error``; seller routes report ``message`` plus per-field ``errors``."""
    content: dict[str, Any] = {"success": False}
    if request.url.path.startswith(ADMIN_PREFIX):
        content["error"] = message
    else:
        content["message"] = message
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("request_failed", error=exc.message, error_type=type(exc).__name__)
        message = INTERNAL_ERROR_MESSAGE if isinstance(exc, StoreFailureError) else exc.message
        return error_response(request, status_code, message)

    logger.info("request_rejected", error=exc.message, error_type=type(exc).__name__, status_code=status_code)
    errors = exc.errors if isinstance(exc, PayoutValidationError) else None
    return error_response(request, status_code, exc.message, errors)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "header", "query", "path")]
        field = loc[-1] if loc else "body"
        errors.setdefault(field, str(error.get("msg", "Invalid value")))

    logger.info("request_validation_failed", fields=sorted(errors))
    return error_response(request, 400, "Invalid request fields", errors)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", error=str(exc), exc_info=exc)
    return error_response(request, 500, INTERNAL_ERROR_MESSAGE)


def create_app(
    database: Database,
    token_verifier: TokenVerifier,
    rate_limiter: SlidingWindowRateLimiter | None = None,
) -> FastAPI:
    """Create the payout HTTP application."""
    app = FastAPI(title="Seller Payout Service")
    app.state.database = database
    app.state.token_verifier = token_verifier

    app.include_router(seller_router)
    app.include_router(admin_router)

    app.add_exception_handler(DomainError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    # Starlette runs the last added middleware first
    if rate_limiter is not None:
        app.add_middleware(RateLimitMiddleware, rate_limiter=rate_limiter)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    @app.get("/health")
    async def health() -> JSONResponse:
        """Liveness plus database reachability."""
        if await database.ping():
            return JSONResponse({"status": "healthy"})
        return JSONResponse({"status": "unhealthy"}, status_code=503)

    return app
