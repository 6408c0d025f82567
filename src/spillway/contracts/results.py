# src/spillway/contracts/results.py
"""Operation outcomes and results.

These types answer: "What did a publish call or a file run produce?"

- PublishOutcome is per batch: which record ids the queue accepted and
  which it rejected. A transport-level failure never produces an outcome;
  it is raised as TransportFailureError instead.
- PipelineResult is per file: Completed or Failed, never both.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from spillway.contracts.enums import PipelineStatus
from spillway.contracts.errors import SpillwayError


@dataclass(frozen=True, slots=True)
class RecordFailure:
    """One record the queue rejected inside an otherwise successful call.

    Fields:
        id: The batch-unique entry id of the rejected record
        reason: Message returned by the transport
        code: Transport error code, if any
        sender_fault: True when the transport blames the request, not itself
    """

    id: str
    reason: str
    code: str | None = None
    sender_fault: bool = False


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    """Per-record result of a single batch publish."""

    succeeded: frozenset[str]
    failed: tuple[RecordFailure, ...] = ()

    @classmethod
    def all_succeeded(cls, record_ids: tuple[str, ...] | list[str]) -> PublishOutcome:
        """Outcome for a call in which every record was accepted."""
        return cls(succeeded=frozenset(record_ids))

    @property
    def ok(self) -> bool:
        """True if no record was rejected."""
        return not self.failed

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Terminal state of one file's run.

    Use the factory methods; the status/cause pairing is checked on
    construction.

    Attributes:
        status: COMPLETED or FAILED
        rows_processed: Rows of units that finished without error. On
            failure this is observable progress, not a durable guarantee.
        cause: The first observed error (FAILED only)
        suppressed: Later errors kept by a bounded error collector, in the
            order they were observed. Empty under first-error-wins.
    """

    status: PipelineStatus
    rows_processed: int = 0
    cause: SpillwayError | None = None
    suppressed: tuple[SpillwayError, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.status == PipelineStatus.COMPLETED and (self.cause is not None or self.suppressed):
            raise ValueError("COMPLETED result cannot carry errors")
        if self.status == PipelineStatus.FAILED and self.cause is None:
            raise ValueError("FAILED result requires a cause")

    @classmethod
    def completed(cls, rows_processed: int) -> PipelineResult:
        return cls(status=PipelineStatus.COMPLETED, rows_processed=rows_processed)

    @classmethod
    def failed(
        cls,
        cause: SpillwayError,
        *,
        rows_processed: int = 0,
        suppressed: tuple[SpillwayError, ...] = (),
    ) -> PipelineResult:
        return cls(
            status=PipelineStatus.FAILED,
            rows_processed=rows_processed,
            cause=cause,
            suppressed=suppressed,
        )

    @property
    def succeeded(self) -> bool:
        return self.status == PipelineStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Progress snapshot emitted each time a work unit finishes.

    Attributes:
        units_total: Units the coordinator was asked to run.
        units_completed: Units that returned without error so far.
        units_failed: Units that raised a pipeline error so far.
        rows_processed: Rows reported by completed units.
        elapsed_seconds: Time since the coordinator started.
    """

    units_total: int
    units_completed: int
    units_failed: int
    rows_processed: int
    elapsed_seconds: float
