"""
Per-user throttle for POST /generate-articles.

Sliding window backed by Redis sorted sets when Redis is configured:
each user gets `ratelimit:generate:{user_id}`, members are request
timestamps. Without Redis the in-memory fallback_limiter is used.

This only limits request rate; free-plan quota is the Entitlement Gate's job.
"""

import logging
import time
import uuid
from typing import Tuple

from . import fallback_limiter
from .pipeline.errors import RateLimitedError

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit:generate:"
DEFAULT_MAX_REQUESTS = 5
DEFAULT_WINDOW_SECONDS = 3600


def check_rate_limit(
    redis_client,
    user_id: str,
    max_requests: int = DEFAULT_MAX_REQUESTS,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> Tuple[bool, int, int]:
    """
    Check and record a request for the given user.

    Returns:
        (allowed, remaining, retry_after_seconds)
    """
    now = time.time()
    key = f"{KEY_PREFIX}{user_id}"

    pipe = redis_client.pipeline(transaction=True)
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zcard(key)
    pipe.zrange(key, 0, 0, withscores=True)
    _, current_count, oldest_entries = pipe.execute()

    if current_count >= max_requests:
        if oldest_entries:
            retry_after = int(oldest_entries[0][1] + window_seconds - now) + 1
        else:
            retry_after = window_seconds
        logger.warning(f"Rate limit exceeded for user {user_id}: {current_count}/{max_requests}")
        return False, 0, retry_after

    pipe = redis_client.pipeline(transaction=True)
    pipe.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
    pipe.expire(key, window_seconds + 60)
    pipe.execute()

    remaining = max_requests - current_count - 1
    logger.info(f"Rate limit OK for user {user_id}: {current_count + 1}/{max_requests} ({remaining} remaining)")
    return True, remaining, 0


class Throttle:
    """Admission hook for the pipeline: raises RateLimitedError when over the limit."""

    def __init__(self, redis_client=None, max_requests: int = DEFAULT_MAX_REQUESTS,
                 window_seconds: int = DEFAULT_WINDOW_SECONDS):
        self._redis = redis_client
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def __call__(self, user_id: str) -> None:
        if self._redis is not None:
            allowed, _, retry_after = check_rate_limit(
                self._redis, user_id, self.max_requests, self.window_seconds
            )
        else:
            allowed, _, retry_after = fallback_limiter.check_rate_limit(
                user_id, self.max_requests, self.window_seconds
            )

        if not allowed:
            raise RateLimitedError(
                f"Rate limit exceeded. Try again in {retry_after}s.",
                retry_after=retry_after,
            )
