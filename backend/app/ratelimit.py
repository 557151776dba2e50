"""Rate limiting utilities.

Per-user throttle for chat messages and analysis attempts. This is abuse
mitigation, not access control: counters may be approximate across
instances.
"""

import logging
from datetime import datetime, timezone
from enum import Enum

import redis

from backend.app.config import Settings
from backend.app.db.context import RequestContext
from backend.app.db.inmemory import InMemoryRateLimiter
from backend.app.db.repositories import RateLimiter, RetryAfter
from backend.app.errors import RateLimitError
from backend.app.utils.metrics import PrometheusDomainMetrics

logger = logging.getLogger(__name__)


class Bucket(str, Enum):
    """Throttle buckets."""

    chat = "chat"
    analysis = "analysis"


def make_rate_limit_key(ctx: RequestContext, bucket: str) -> str:
    """Create rate limit key from context and bucket.

    Args:
        ctx: Request context
        bucket: Bucket name (e.g., "chat", "analysis")

    Returns:
        Rate limit key
    """
    return f"{ctx.user_id}:{bucket}"


class RedisRateLimiter:
    """Redis-based rate limiter using INCR + EXPIRE pattern."""

    def __init__(self, redis_client: redis.Redis, max_requests: int, window_seconds: int = 60) -> None:
        """Initialize rate limiter.

        Args:
            redis_client: Redis client
            max_requests: Maximum requests per window
            window_seconds: Window size in seconds (default 60)
        """
        self._redis = redis_client
        self._max_requests = max_requests
        self._window_seconds = window_seconds

    def check_quota(self, key: str, now: datetime) -> RetryAfter | None:
        """Check if quota is available.

        Uses Redis INCR + EXPIRE for atomic counting.

        Args:
            key: Rate limit key
            now: Current timestamp

        Returns:
            RetryAfter if over quota, None if allowed
        """
        # Use a window-aligned key
        window_start = int(now.timestamp() / self._window_seconds) * self._window_seconds
        redis_key = f"ratelimit:{key}:{window_start}"

        count = self._redis.incr(redis_key)

        # Set expiry on first request
        if count == 1:
            self._redis.expire(redis_key, self._window_seconds)

        if count > self._max_requests:
            ttl = self._redis.ttl(redis_key)
            return RetryAfter(seconds=max(1, ttl))

        return None


class RequestThrottle:
    """Maps buckets to limiters and enforces them for a caller."""

    def __init__(self, limiters: dict[Bucket, RateLimiter]) -> None:
        self._limiters = limiters
        self._metrics = PrometheusDomainMetrics()

    def check(self, ctx: RequestContext, bucket: Bucket, now: datetime | None = None) -> None:
        """Consume one unit of the caller's quota.

        Raises:
            RateLimitError: If the caller is over quota for the bucket
        """
        limiter = self._limiters.get(bucket)
        if limiter is None:
            return

        if now is None:
            now = datetime.now(timezone.utc)

        retry_after = limiter.check_quota(make_rate_limit_key(ctx, bucket.value), now)
        if retry_after is None:
            return

        logger.warning(
            f"Rate limit exceeded for bucket {bucket.value}",
            extra={"structured": {"user_id": str(ctx.user_id), "bucket": bucket.value}},
        )
        self._metrics.inc_rate_limited(bucket.value)
        raise RateLimitError(bucket.value, retry_after.seconds)


def create_throttle(settings: Settings) -> RequestThrottle:
    """Build the throttle from settings; Redis when REDIS_URL is set, else in-memory."""
    windows = {
        Bucket.chat: (settings.chat_messages_per_window, settings.chat_window_seconds),
        Bucket.analysis: (settings.analyses_per_window, settings.analysis_window_seconds),
    }

    limiters: dict[Bucket, RateLimiter] = {}
    if settings.redis_url:
        client = redis.from_url(settings.redis_url, decode_responses=True)  # type: ignore[no-untyped-call]
        for bucket, (max_requests, window_seconds) in windows.items():
            limiters[bucket] = RedisRateLimiter(client, max_requests, window_seconds)
    else:
        for bucket, (max_requests, window_seconds) in windows.items():
            limiters[bucket] = InMemoryRateLimiter(max_requests, window_seconds)

    return RequestThrottle(limiters)
