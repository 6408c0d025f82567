# src/spillway/engine/cancellation.py
"""Cooperative cancellation and deadlines for concurrent work units.

A CancellationToken is shared by every task of one fan-out. Tasks call
check() before each blocking call (source read, publish); a task already
inside such a call runs to completion. Cancellation is best-effort, never
preemptive.

Tokens form a tree: a child observes its parent's cancellation and
deadline, but cancelling a child leaves the parent untouched. Each
Coordinator run cancels only its own child scope.

Time is read through a Clock so deadline paths are testable without sleep:
- SystemClock: time.monotonic() (production)
- MockClock: advanced explicitly by tests
"""

from __future__ import annotations

import threading
import time
from typing import Protocol

from spillway.contracts.errors import DeadlineExceededError, OperationCancelledError


class Clock(Protocol):
    """Abstract monotonic clock."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds."""
        ...


class SystemClock:
    """Production clock using time.monotonic()."""

    def monotonic(self) -> float:
        return time.monotonic()


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock()
        token = CancellationToken(deadline_seconds=5.0, clock=clock)
        clock.advance(6.0)
        token.check()  # raises DeadlineExceededError
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start
        self._lock = threading.Lock()

    def monotonic(self) -> float:
        with self._lock:
            return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        with self._lock:
            self._current += seconds


DEFAULT_CLOCK: Clock = SystemClock()


class CancellationToken:
    """Shared cancellation signal with an optional deadline.

    Args:
        deadline_seconds: Seconds from now after which check() raises
            DeadlineExceededError. None means no deadline of its own.
        clock: Time source (default: SystemClock)
        parent: Token whose cancellation and deadline this one inherits
    """

    def __init__(
        self,
        *,
        deadline_seconds: float | None = None,
        clock: Clock = DEFAULT_CLOCK,
        parent: CancellationToken | None = None,
    ) -> None:
        if deadline_seconds is not None and deadline_seconds <= 0:
            raise ValueError(f"deadline_seconds must be > 0, got {deadline_seconds}")
        self._event = threading.Event()
        self._clock = clock
        self._parent = parent
        self._deadline_seconds = deadline_seconds
        self._deadline_at = None if deadline_seconds is None else clock.monotonic() + deadline_seconds
        self._reason: str | None = None

    def child(self) -> CancellationToken:
        """Create a token cancelled whenever this one is."""
        return CancellationToken(clock=self._clock, parent=self)

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation. Idempotent; the first reason is kept."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def reason(self) -> str | None:
        if self._event.is_set():
            return self._reason
        return self._parent.reason if self._parent is not None else None

    @property
    def deadline_exceeded(self) -> bool:
        if self._deadline_at is not None and self._clock.monotonic() >= self._deadline_at:
            return True
        return self._parent is not None and self._parent.deadline_exceeded

    @property
    def cancelled(self) -> bool:
        """True once cancelled, directly, via a parent, or by deadline."""
        if self._event.is_set() or self.deadline_exceeded:
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining_seconds(self) -> float | None:
        """Seconds until the nearest deadline in the chain, or None."""
        own = None if self._deadline_at is None else max(0.0, self._deadline_at - self._clock.monotonic())
        inherited = self._parent.remaining_seconds() if self._parent is not None else None
        if own is None:
            return inherited
        if inherited is None:
            return own
        return min(own, inherited)

    def check(self) -> None:
        """Raise if the caller should stop before its next blocking call.

        Raises:
            DeadlineExceededError: A deadline in the chain has passed
            OperationCancelledError: The token (or an ancestor) was cancelled
        """
        if self.deadline_exceeded:
            raise DeadlineExceededError(self._nearest_deadline_seconds())
        if self.cancelled:
            reason = self.reason
            raise OperationCancelledError(f"Cancelled: {reason}" if reason else "Cancelled")

    def _nearest_deadline_seconds(self) -> float | None:
        token: CancellationToken | None = self
        while token is not None:
            if token._deadline_seconds is not None:
                return token._deadline_seconds
            token = token._parent
        return None
