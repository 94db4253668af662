"""
Thread-safe in-memory metrics for the article worker.

  - counters:  requests.generate, stage.<terminal stage>, errors.<stage>
  - latency:   last MAX_SAMPLES durations per endpoint, in milliseconds
  - gauges:    start_time and anything set at runtime
  - errors:    the last MAX_ERRORS failures, for quick root-cause reading

Everything resets on restart.
"""

import threading
import time
from collections import defaultdict
from typing import Dict, List

_lock = threading.Lock()

_counters: Dict[str, int] = defaultdict(int)

_latency_samples: Dict[str, List[float]] = defaultdict(list)
MAX_SAMPLES = 100

_gauges: Dict[str, float] = defaultdict(float)

_recent_errors: List[dict] = []
MAX_ERRORS = 50


def inc_counter(name: str, amount: int = 1):
    with _lock:
        _counters[name] += amount


def record_latency(endpoint: str, duration_ms: float):
    with _lock:
        samples = _latency_samples[endpoint]
        samples.append(duration_ms)
        if len(samples) > MAX_SAMPLES:
            _latency_samples[endpoint] = samples[-MAX_SAMPLES:]


def set_gauge(name: str, value: float):
    with _lock:
        _gauges[name] = value


def record_error(endpoint: str, stage: str, message: str, user_id: str = ""):
    with _lock:
        _recent_errors.append({
            "timestamp": time.time(),
            "endpoint": endpoint,
            "stage": stage,
            "message": message[:300],
            "user_id": user_id,
        })
        if len(_recent_errors) > MAX_ERRORS:
            _recent_errors.pop(0)


def _percentiles(samples: List[float]) -> dict:
    ordered = sorted(samples)
    n = len(ordered)
    return {
        "p50": ordered[n // 2],
        "p95": ordered[int(n * 0.95)] if n >= 20 else ordered[-1],
        "p99": ordered[int(n * 0.99)] if n >= 100 else ordered[-1],
        "avg": sum(ordered) / n,
        "count": n,
    }


def get_snapshot() -> dict:
    now = time.time()
    with _lock:
        errors_by_stage: Dict[str, int] = defaultdict(int)
        for err in _recent_errors:
            errors_by_stage[err["stage"]] += 1

        return {
            "timestamp": now,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
            "latency": {ep: _percentiles(s) for ep, s in _latency_samples.items() if s},
            "recent_errors": list(_recent_errors[-10:]),
            "errors_by_stage": dict(errors_by_stage),
            "uptime_seconds": now - _gauges.get("start_time", now),
        }


def reset():
    with _lock:
        _counters.clear()
        _latency_samples.clear()
        _gauges.clear()
        _recent_errors.clear()
