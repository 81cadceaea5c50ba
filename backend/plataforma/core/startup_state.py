"""Startup State - explicit state token for the process-wide boot sequence.

Invariants:
    - Single forward path: UNSTARTED -> POOL_PROBING -> SCHEMA_INITIALIZING -> READY | DEGRADED
    - FAILED is terminal and reachable from every state (a bind failure happens after READY)
    - READY and DEGRADED are written once; further forward transitions raise
    - Pure: no IO, no asyncio (the readiness signal lives in infrastructure/lifecycle.py)
"""

from dataclasses import dataclass, field
from enum import Enum


class StartupState(str, Enum):
    """Boot phases of the service."""
    UNSTARTED = "unstarted"
    POOL_PROBING = "pool_probing"
    SCHEMA_INITIALIZING = "schema_initializing"
    READY = "ready"
    DEGRADED = "degraded"
    FAILED = "failed"


_FORWARD: dict[StartupState, frozenset[StartupState]] = {
    StartupState.UNSTARTED: frozenset({StartupState.POOL_PROBING}),
    StartupState.POOL_PROBING: frozenset({StartupState.SCHEMA_INITIALIZING}),
    StartupState.SCHEMA_INITIALIZING: frozenset(
        {StartupState.READY, StartupState.DEGRADED},
    ),
    StartupState.READY: frozenset(),
    StartupState.DEGRADED: frozenset(),
    StartupState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset(
    {StartupState.READY, StartupState.DEGRADED, StartupState.FAILED},
)


class InvalidTransitionError(RuntimeError):
    """Raised on any transition outside the forward path."""

    def __init__(self, current: StartupState, target: StartupState):
        super().__init__(f"Illegal startup transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


@dataclass
class StartupStatus:
    """Current startup state plus the steps that degraded it."""
    state: StartupState = StartupState.UNSTARTED
    failed_steps: list[str] = field(default_factory=list)
    failure_reason: str | None = None

    @property
    def is_settled(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_serving(self) -> bool:
        return self.state in (StartupState.READY, StartupState.DEGRADED)

    def advance(self, target: StartupState) -> StartupState:
        """Move forward along the boot path, or raise InvalidTransitionError."""
        if target is StartupState.FAILED:
            return self.fail("unspecified")
        if target not in _FORWARD[self.state]:
            raise InvalidTransitionError(self.state, target)
        self.state = target
        return self.state

    def record_degradation(self, step: str) -> None:
        if step not in self.failed_steps:
            self.failed_steps.append(step)

    def settle(self) -> StartupState:
        """Finish schema initialization as READY, or DEGRADED if any step failed."""
        target = StartupState.DEGRADED if self.failed_steps else StartupState.READY
        return self.advance(target)

    def fail(self, reason: str) -> StartupState:
        if self.state is StartupState.FAILED:
            return self.state
        self.state = StartupState.FAILED
        self.failure_reason = reason
        return self.state

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "failed_steps": list(self.failed_steps),
            "failure_reason": self.failure_reason,
        }
