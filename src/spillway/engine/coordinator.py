# src/spillway/engine/coordinator.py
"""Bounded fan-out with fail-fast, first-error-wins semantics.

The Coordinator drives a set of independent work units to completion:
- At most ``concurrency`` units run at once (thread pool, lazy submission)
- The first failing unit cancels the run's token; no further unit is launched
- Units already past their last cancellation check finish; their results
  are discarded from the outcome
- Exactly one error is reported as the cause; a bounded ErrorCollector may
  keep a few later ones as ``suppressed`` diagnostics
- COMPLETED is returned only after every launched unit returned cleanly

Units report how many rows they handled. Exceptions outside the
SpillwayError taxonomy are bugs: siblings are cancelled, in-flight units
drain, and the exception is re-raised in the calling thread.

Usage:
    coordinator = Coordinator(name="ranges")
    result = coordinator.run(units, concurrency=4, token=token)
    if not result.succeeded:
        raise result.cause
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import structlog

from spillway.contracts.errors import OperationCancelledError, SpillwayError
from spillway.contracts.results import PipelineResult, ProgressEvent
from spillway.engine.cancellation import DEFAULT_CLOCK, CancellationToken, Clock

logger = structlog.get_logger(__name__)


@runtime_checkable
class WorkUnit(Protocol):
    """One independently schedulable piece of work.

    run() must call token.check() before every blocking call and return the
    number of rows it handled. It reports failure by raising SpillwayError.
    """

    name: str

    def run(self, token: CancellationToken) -> int: ...


@dataclass(frozen=True)
class FunctionUnit:
    """Adapt a plain callable into a WorkUnit."""

    name: str
    fn: Callable[[CancellationToken], int]

    def run(self, token: CancellationToken) -> int:
        return self.fn(token)


class ErrorCollector:
    """Bounded, thread-safe collection of unit errors.

    Keeps at most ``capacity`` errors in observation order. Cancellation
    errors are only kept while nothing else has been observed: they are the
    echo of a failure, never its cause.
    """

    def __init__(self, capacity: int = 1) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._errors: list[SpillwayError] = []
        self._observed = 0
        self._lock = threading.Lock()

    def record(self, error: SpillwayError) -> None:
        with self._lock:
            self._observed += 1
            is_cancel = isinstance(error, OperationCancelledError)
            only_cancels = all(isinstance(e, OperationCancelledError) for e in self._errors)
            if not is_cancel and only_cancels:
                self._errors = [error]
            elif is_cancel and self._errors:
                return
            elif len(self._errors) < self._capacity:
                self._errors.append(error)

    def __bool__(self) -> bool:
        with self._lock:
            return bool(self._errors)

    @property
    def cause(self) -> SpillwayError | None:
        with self._lock:
            return self._errors[0] if self._errors else None

    @property
    def suppressed(self) -> tuple[SpillwayError, ...]:
        with self._lock:
            return tuple(self._errors[1:])

    @property
    def dropped(self) -> int:
        """Errors observed but not retained."""
        with self._lock:
            return self._observed - len(self._errors)


class _ProgressTracker:
    """Aggregate progress across units (thread-safe)."""

    def __init__(self, units_total: int, clock: Clock) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._started = clock.monotonic()
        self.units_total = units_total
        self.units_launched = 0
        self.units_completed = 0
        self.units_failed = 0
        self.rows_processed = 0

    def launched(self) -> None:
        with self._lock:
            self.units_launched += 1

    def completed(self, rows: int) -> None:
        with self._lock:
            self.units_completed += 1
            self.rows_processed += rows

    def failed(self) -> None:
        with self._lock:
            self.units_failed += 1

    def snapshot(self) -> ProgressEvent:
        with self._lock:
            return ProgressEvent(
                units_total=self.units_total,
                units_completed=self.units_completed,
                units_failed=self.units_failed,
                rows_processed=self.rows_processed,
                elapsed_seconds=self._clock.monotonic() - self._started,
            )


class Coordinator:
    """Run work units concurrently and reduce them to one PipelineResult.

    Args:
        max_errors: Errors retained per run (1 = first error wins)
        on_progress: Called from the coordinating thread after each unit finishes
        clock: Time source for progress timing
        name: Label used in logs and worker thread names
    """

    def __init__(
        self,
        *,
        max_errors: int = 1,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        clock: Clock = DEFAULT_CLOCK,
        name: str = "coordinator",
    ) -> None:
        if max_errors < 1:
            raise ValueError(f"max_errors must be >= 1, got {max_errors}")
        self._max_errors = max_errors
        self._on_progress = on_progress
        self._clock = clock
        self._name = name

    def run(
        self,
        units: Sequence[WorkUnit],
        concurrency: int,
        token: CancellationToken | None = None,
    ) -> PipelineResult:
        """Run units with at most ``concurrency`` in flight.

        Args:
            units: Work units; order is launch order, not completion order
            concurrency: Maximum units executing at once (>= 1)
            token: Caller's token. The run cancels only a child of it.

        Returns:
            COMPLETED with total rows, or FAILED with the first error

        Raises:
            ValueError: If concurrency < 1
            Exception: Any non-SpillwayError raised by a unit, after draining
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if not units:
            return PipelineResult.completed(0)

        scope = token.child() if token is not None else CancellationToken(clock=self._clock)
        errors = ErrorCollector(self._max_errors)
        progress = _ProgressTracker(len(units), self._clock)
        bug: BaseException | None = None

        pending = iter(units)
        in_flight: dict[Future[int], WorkUnit] = {}
        workers = min(concurrency, len(units))

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=self._name) as pool:

            def fill() -> None:
                # Lazy submission: nothing new starts once the scope is cancelled
                while len(in_flight) < concurrency and not scope.cancelled:
                    unit = next(pending, None)
                    if unit is None:
                        return
                    in_flight[pool.submit(unit.run, scope)] = unit
                    progress.launched()

            fill()
            while in_flight:
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    unit = in_flight.pop(future)
                    try:
                        rows = future.result()
                    except SpillwayError as e:
                        errors.record(e)
                        progress.failed()
                        if isinstance(e, OperationCancelledError):
                            logger.debug("unit cancelled", coordinator=self._name, unit=unit.name, **e.details())
                        else:
                            logger.error("unit failed", coordinator=self._name, unit=unit.name, **e.details())
                        scope.cancel(f"{unit.name} failed")
                    except Exception as e:
                        # Not a pipeline error: our bug. Stop everything and re-raise below.
                        if bug is None:
                            bug = e
                        progress.failed()
                        scope.cancel(f"{unit.name} crashed")
                    else:
                        progress.completed(rows)
                        logger.debug("unit completed", coordinator=self._name, unit=unit.name, rows=rows)
                    if self._on_progress is not None:
                        self._on_progress(progress.snapshot())
                if not errors and bug is None:
                    fill()

        if bug is not None:
            raise bug

        if not errors and progress.units_launched < len(units):
            # Stopped launching without a unit failing: the caller's token fired
            try:
                scope.check()
            except SpillwayError as e:
                errors.record(e)
            else:
                raise RuntimeError(f"{self._name}: launched {progress.units_launched} of {len(units)} units without cancellation")

        cause = errors.cause
        if cause is not None:
            logger.info(
                "coordinator failed",
                coordinator=self._name,
                units_total=len(units),
                units_launched=progress.units_launched,
                units_completed=progress.units_completed,
                rows_processed=progress.rows_processed,
                errors_dropped=errors.dropped,
            )
            return PipelineResult.failed(
                cause,
                rows_processed=progress.rows_processed,
                suppressed=errors.suppressed,
            )

        return PipelineResult.completed(progress.rows_processed)
