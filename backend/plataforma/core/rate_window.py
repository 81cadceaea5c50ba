"""Rate Limit Window - fixed-window counter arithmetic for one client identity.

Invariants:
    - A window rolls over when now >= window_start + duration; the count restarts at zero
    - A hit is admitted iff the count after incrementing is <= threshold
    - Pure: callers own storage and locking
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RateWindow:
    """Counter state for one client identity."""
    count: int
    window_start: float

    def expired(self, now: float, duration: float) -> bool:
        return now >= self.window_start + duration


@dataclass(frozen=True)
class RateDecision:
    admitted: bool
    count: int
    retry_after: float


def register_hit(
    window: RateWindow | None, now: float, duration: float, threshold: int,
) -> tuple[RateWindow, RateDecision]:
    """Count one request and decide admission. Returns the new window and the decision."""
    if window is None or window.expired(now, duration):
        window = RateWindow(count=0, window_start=now)
    updated = RateWindow(count=window.count + 1, window_start=window.window_start)
    admitted = updated.count <= threshold
    retry_after = 0.0 if admitted else max(0.0, updated.window_start + duration - now)
    return updated, RateDecision(admitted, updated.count, retry_after)
