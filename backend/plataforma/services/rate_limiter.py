"""Rate Limiter - per-client fixed-window admission control over a swappable counter store.

Invariants:
    - check() is atomic per key: read, increment and write happen under one lock with no await
    - The limiter's contract (RateDecision) does not depend on where counters live
    - Stale windows are swept once the table passes SWEEP_THRESHOLD keys

Design Decisions:
    - In-process store only: a multi-instance deployment swaps RateLimitStore for a shared one
"""

import threading
import time
from collections.abc import Callable
from typing import Protocol

from starlette.requests import Request

from plataforma.core.rate_window import RateDecision, RateWindow, register_hit

SWEEP_THRESHOLD = 10_000


class RateLimitStore(Protocol):
    """Storage for per-identity windows."""

    def hit(
        self, key: str, now: float, window_seconds: float, limit: int,
    ) -> RateDecision: ...

    def reset(self, key: str | None = None) -> None: ...


class InMemoryRateLimitStore:
    def __init__(self) -> None:
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def hit(
        self, key: str, now: float, window_seconds: float, limit: int,
    ) -> RateDecision:
        with self._lock:
            window, decision = register_hit(
                self._windows.get(key), now, window_seconds, limit,
            )
            self._windows[key] = window
            if len(self._windows) > SWEEP_THRESHOLD:
                self._sweep(now, window_seconds)
            return decision

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float, window_seconds: float) -> None:
        stale = [k for k, w in self._windows.items() if w.expired(now, window_seconds)]
        for k in stale:
            del self._windows[k]


class RateLimiter:
    """Admit/reject decisions for client identities."""

    def __init__(
        self,
        limit: int = 100,
        window_seconds: float = 15 * 60,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    def check(self, key: str) -> RateDecision:
        return self.store.hit(key, self._clock(), self.window_seconds, self.limit)


def client_ip(request: Request, trusted_proxy_hops: int = 1) -> str:
    """Originating address: the entry appended by the nearest trusted proxy, else the peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and trusted_proxy_hops > 0:
        hops = [h.strip() for h in forwarded.split(",") if h.strip()]
        if hops:
            return hops[-min(trusted_proxy_hops, len(hops))]
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
