import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException, Request


@dataclass
class LimitResult:
    allowed: bool
    remaining: int
    retry_after: int


class SlidingWindowLimiter:
    """Per-key request timestamps kept for one window; process-local."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int, window: int) -> LimitResult:
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            while hits and now - hits[0] >= window:
                hits.popleft()
            if len(hits) >= limit:
                wait = int(hits[0] + window - now) + 1
                return LimitResult(allowed=False, remaining=0, retry_after=max(1, wait))
            hits.append(now)
            return LimitResult(allowed=True, remaining=limit - len(hits), retry_after=0)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


limiter = SlidingWindowLimiter()


def client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


def rate_limited(scope: str, limit: int, window: int):
    def _check(request: Request) -> None:
        result = limiter.hit(f"{scope}:{client_key(request)}", limit, window)
        if not result.allowed:
            raise HTTPException(
                status_code=429,
                detail={"error": "Too many requests", "retryAfter": result.retry_after},
                headers={"Retry-After": str(result.retry_after)},
            )

    return Depends(_check)
