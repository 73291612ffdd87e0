from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from ulid import ULID


if TYPE_CHECKING:
    import redis.asyncio as redis

logger = structlog.get_logger()


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_seconds: int


class SlidingWindowRateLimiter:
    """
    Sliding window rate limiter using Redis sorted sets.

    Allows `max_requests` per `window_seconds` for each identifier.
    """

    def __init__(
        self,
        redis_client: "redis.Redis[bytes]",
        max_requests: int = 100,
        window_seconds: int = 60,
        key_prefix: str = "payout_ratelimit:",
    ) -> None:
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._key_prefix = key_prefix

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    @property
    def max_requests(self) -> int:
        return self._max_requests

    async def check(self, identifier: str) -> RateLimitDecision:
        """Record one request for ``identifier`` and decide whether it may proceed."""
        key = f"{self._key_prefix}{identifier}"
        now = datetime.now(UTC).timestamp()
        window_start = now - self._window_seconds

        pipe = self._redis.pipeline()
        pipe.zremrangebyscore(key, 0, window_start)
        pipe.zcard(key)
        # Unique member so requests landing on the same timestamp are all counted
        pipe.zadd(key, {f"{now}:{ULID()}": now})
        pipe.expire(key, self._window_seconds)

        results: list[Any] = await pipe.execute()
        current_count = int(results[1])

        allowed = current_count < self._max_requests
        remaining = max(0, self._max_requests - current_count - 1)

        if not allowed:
            logger.warning(
                "rate_limit_exceeded",
                identifier=identifier,
                current_count=current_count,
                max_requests=self._max_requests,
            )

        return RateLimitDecision(
            allowed=allowed,
            remaining=remaining,
            retry_after_seconds=0 if allowed else self._window_seconds,
        )
