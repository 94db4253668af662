"""
In-memory fallback for the per-user throttle.

Used when Redis is unreachable. State lives in this process only and is lost
on restart, so several replicas each enforce their own window.
"""

import threading
import time
from typing import Dict, List, Tuple

FALLBACK_MAX_REQUESTS = 5
FALLBACK_WINDOW_SECONDS = 3600
MAX_TRACKED_USERS = 10_000  # prune idle users beyond this

_lock = threading.Lock()
_request_log: Dict[str, List[float]] = {}  # user_id → [timestamp, ...]


def check_rate_limit(
    user_id: str,
    max_requests: int = FALLBACK_MAX_REQUESTS,
    window_seconds: int = FALLBACK_WINDOW_SECONDS,
) -> Tuple[bool, int, int]:
    """
    In-memory sliding-window rate limiter.

    Returns:
        (allowed, remaining, retry_after_seconds)

    Same contract as rate_limiter.check_rate_limit() but without Redis.
    """
    now = time.time()
    window_start = now - window_seconds

    with _lock:
        if len(_request_log) > MAX_TRACKED_USERS:
            _prune(window_start)

        timestamps = [ts for ts in _request_log.get(user_id, []) if ts > window_start]

        if len(timestamps) >= max_requests:
            retry_after = int(timestamps[0] + window_seconds - now) + 1 if timestamps else window_seconds
            _request_log[user_id] = timestamps
            return False, 0, retry_after

        timestamps.append(now)
        _request_log[user_id] = timestamps
        return True, max_requests - len(timestamps), 0


def _prune(window_start: float) -> None:
    # caller holds _lock
    for user_id in list(_request_log):
        kept = [ts for ts in _request_log[user_id] if ts > window_start]
        if kept:
            _request_log[user_id] = kept
        else:
            del _request_log[user_id]


def reset() -> None:
    with _lock:
        _request_log.clear()
