"""
In-process sliding-window rate limiter for AI generation.
Per worker process; a multi-instance deployment would move this to Redis with the same key contract.
"""
from __future__ import annotations

import threading
import time
from collections import deque

from outreach.app.core.config import GENERATE_RATE_WINDOW_SECONDS

_hits: dict[str, deque[float]] = {}
_lock = threading.Lock()


def check_rate_limit(key: str, limit: int, window_seconds: int = GENERATE_RATE_WINDOW_SECONDS) -> tuple[bool, int]:
    """
    Record a hit for `key` if under `limit` within the window.
    Returns (allowed, retry_after_seconds).
    """
    now = time.monotonic()
    with _lock:
        hits = _hits.setdefault(key, deque())
        while hits and now - hits[0] >= window_seconds:
            hits.popleft()
        if len(hits) >= limit:
            retry_after = int(window_seconds - (now - hits[0])) + 1
            return False, retry_after
        hits.append(now)
        return True, 0


def clear() -> None:
    """Drop all counters (tests)."""
    with _lock:
        _hits.clear()
