import structlog

from payout_service.api.app import create_app
from payout_service.api.metrics_server import UvicornServer
from payout_service.infrastructure.database import Database
from payout_service.infrastructure.rate_limiter import SlidingWindowRateLimiter
from payout_service.infrastructure.redis_client import RedisClient
from payout_service.infrastructure.security import TokenVerifier


logger = structlog.get_logger()


class HttpServer(UvicornServer):
    def __init__(
        self,
        database: Database,
        token_verifier: TokenVerifier,
        redis_client: RedisClient | None = None,
        rate_limit_enabled: bool = True,
        rate_limit_max_requests: int = 100,
        rate_limit_window_seconds: int = 60,
        host: str = "0.0.0.0",
        port: int = 8000,
    ) -> None:
        rate_limiter: SlidingWindowRateLimiter | None = None
        if rate_limit_enabled and redis_client:
            rate_limiter = SlidingWindowRateLimiter(
                redis_client=redis_client.client,
                max_requests=rate_limit_max_requests,
                window_seconds=rate_limit_window_seconds,
            )
            logger.info(
                "rate_limiting_enabled",
                max_requests=rate_limit_max_requests,
                window_seconds=rate_limit_window_seconds,
            )

        app = create_app(
            database=database,
            token_verifier=token_verifier,
            rate_limiter=rate_limiter,
        )
        super().__init__(app, name="http", host=host, port=port)
