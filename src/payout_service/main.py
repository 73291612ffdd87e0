import asyncio
import signal
from typing import NoReturn

import structlog

from payout_service.api.metrics_server import MetricsServer
from payout_service.config import settings
from payout_service.http_server import HttpServer
from payout_service.infrastructure.database import Database
from payout_service.infrastructure.redis_client import RedisClient
from payout_service.infrastructure.security import TokenVerifier
from payout_service.logging import configure_logging


logger = structlog.get_logger()


async def main() -> NoReturn:
    configure_logging(
        level=settings.log_level,
        log_format=settings.log_format,
    )

    logger.info(
        "starting_payout_service",
        http_port=settings.http_port,
        metrics_port=settings.metrics_port,
        log_level=settings.log_level,
        rate_limit_enabled=settings.rate_limit_enabled,
        metrics_enabled=settings.metrics_enabled,
        default_currency=settings.default_currency,
    )

    database = Database(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )

    redis_client: RedisClient | None = None
    if settings.rate_limit_enabled:
        redis_client = RedisClient(settings.redis_url)
        await redis_client.connect()

    metrics_server: MetricsServer | None = None
    if settings.metrics_enabled:
        metrics_server = MetricsServer(
            host=settings.metrics_host,
            port=settings.metrics_port,
        )
        await metrics_server.start()

    server = HttpServer(
        database=database,
        token_verifier=TokenVerifier(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            audience=settings.jwt_audience,
        ),
        redis_client=redis_client,
        rate_limit_enabled=settings.rate_limit_enabled,
        rate_limit_max_requests=settings.rate_limit_max_requests,
        rate_limit_window_seconds=settings.rate_limit_window_seconds,
        host=settings.http_host,
        port=settings.http_port,
    )

    loop = asyncio.get_running_loop()

    stopped = False

    async def shutdown() -> None:
        nonlocal stopped
        if stopped:
            return
        stopped = True
        logger.info("shutting_down")
        await server.stop(grace=10.0)
        if metrics_server:
            await metrics_server.stop()
        if redis_client:
            await redis_client.close()
        await database.close()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(shutdown()),
        )

    try:
        await server.start()
        await server.wait_for_termination()
    finally:
        await shutdown()

    raise SystemExit(0)


if __name__ == "__main__":
    asyncio.run(main())
