import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp
from ulid import ULID

from payout_service.api.http_handlers import ADMIN_PREFIX
from payout_service.infrastructure.metrics import (
    HTTP_REQUEST_DURATION,
    HTTP_REQUESTS_TOTAL,
    RATE_LIMIT_EXCEEDED_TOTAL,
)
from payout_service.infrastructure.rate_limiter import SlidingWindowRateLimiter
from payout_service.logging import bind_request_context


logger = structlog.get_logger()

UNLIMITED_PATHS = frozenset({"/health"})


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", "unmatched")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id to every log line and echoes it in the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id") or str(ULID())
        bind_request_context(request_id=request_id, method=request.method, path=request.url.path)
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Collects Prometheus metrics per route template."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time = time.perf_counter()
        status_code = "500"

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            duration = time.perf_counter() - start_time
            route = _route_template(request)
            HTTP_REQUEST_DURATION.labels(method=request.method, route=route, status_code=status_code).observe(
                duration
            )
            HTTP_REQUESTS_TOTAL.labels(method=request.method, route=route, status_code=status_code).inc()


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects callers that exceed the sliding-window request budget."""

    def __init__(self, app: ASGIApp, rate_limiter: SlidingWindowRateLimiter) -> None:
        super().__init__(app)
        self._rate_limiter = rate_limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in UNLIMITED_PATHS:
            return await call_next(request)

        identifier_type, identifier = self._get_identifier(request)
        decision = await self._rate_limiter.check(f"{identifier_type}:{identifier}")

        if not decision.allowed:
            RATE_LIMIT_EXCEEDED_TOTAL.labels(identifier_type=identifier_type).inc()
            message_key = "error" if request.url.path.startswith(ADMIN_PREFIX) else "message"
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    message_key: f"Rate limit exceeded. Retry after {decision.retry_after_seconds}s",
                },
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response

    def _get_identifier(self, request: Request) -> tuple[str, str]:
        if client_id := request.headers.get("x-client-id"):
            return "client", client_id

        if forwarded := request.headers.get("x-forwarded-for"):
            return "ip", forwarded.split(",")[0].strip()

        if request.client is not None:
            return "ip", request.client.host

        return "path", request.url.path
