# src/spillway/contracts/errors.py
"""Error taxonomy for the partition-and-publish pipeline.

Every failure the engine knows how to report is a SpillwayError subclass.
Anything else raised inside a work unit is treated as a bug: siblings are
cancelled and the exception is re-raised in the coordinating thread.

Fatality by kind:
    SourceUnavailableError      -> whole file
    QueryFailureError           -> its unit (fail-fast aborts siblings)
    EncodingFailureError        -> its batch
    TransportFailureError       -> its batch
    PartialPublishFailureError  -> its batch (currently fatal for the file)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NotRequired, TypedDict

from spillway.contracts.enums import ErrorKind

if TYPE_CHECKING:
    from spillway.contracts.data import RowRange
    from spillway.contracts.results import RecordFailure


class ErrorDetails(TypedDict):
    """Schema for structured error payloads in log events."""

    kind: str  # ErrorKind value
    error: str  # Human-readable message
    error_type: str  # Exception class name
    path: NotRequired[str]
    start: NotRequired[int]
    end: NotRequired[int]
    batch_index: NotRequired[int]
    failed_count: NotRequired[int]
    succeeded_count: NotRequired[int]


class SpillwayError(Exception):
    """Base class for all reportable pipeline failures."""

    kind: ErrorKind = ErrorKind.FILE_PROCESSING

    def details(self) -> ErrorDetails:
        """Return a structured, JSON-safe description of this error."""
        return {
            "kind": self.kind.value,
            "error": str(self),
            "error_type": type(self).__name__,
        }


class SourceUnavailableError(SpillwayError):
    """The row source cannot be opened (or fetched) at all."""

    kind = ErrorKind.SOURCE_UNAVAILABLE

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"Source unavailable {path}: {message}")

    def details(self) -> ErrorDetails:
        details = super().details()
        details["path"] = self.path
        return details


class QueryFailureError(SpillwayError):
    """Row count or range read failed.

    Attributes:
        row_range: The range being read, or None for a count failure.
    """

    kind = ErrorKind.QUERY_FAILURE

    def __init__(self, message: str, *, row_range: RowRange | None = None) -> None:
        self.row_range = row_range
        if row_range is not None:
            message = f"{message} (rows {row_range.start}-{row_range.end})"
        super().__init__(message)

    def details(self) -> ErrorDetails:
        details = super().details()
        if self.row_range is not None:
            details["start"] = self.row_range.start
            details["end"] = self.row_range.end
        return details


class EncodingFailureError(SpillwayError):
    """A record could not be serialized into a message body."""

    kind = ErrorKind.ENCODING_FAILURE

    def __init__(self, message: str, *, batch_index: int | None = None, record_id: str | None = None) -> None:
        self.batch_index = batch_index
        self.record_id = record_id
        super().__init__(message)

    def details(self) -> ErrorDetails:
        details = super().details()
        if self.batch_index is not None:
            details["batch_index"] = self.batch_index
        return details


class TransportFailureError(SpillwayError):
    """The publish call itself failed; no record outcome is known."""

    kind = ErrorKind.TRANSPORT_FAILURE

    def __init__(self, message: str, *, batch_index: int | None = None, cause: BaseException | None = None) -> None:
        self.batch_index = batch_index
        self.cause = cause
        super().__init__(message)

    def details(self) -> ErrorDetails:
        details = super().details()
        if self.batch_index is not None:
            details["batch_index"] = self.batch_index
        return details


class PartialPublishFailureError(SpillwayError):
    """The publish call succeeded but some records were rejected.

    Distinct from TransportFailureError: the records listed in
    ``succeeded_ids`` are already on the queue, so retrying the whole file
    will duplicate them.
    """

    kind = ErrorKind.PARTIAL_PUBLISH_FAILURE

    def __init__(
        self,
        batch_index: int,
        succeeded_ids: frozenset[str],
        failures: tuple[RecordFailure, ...],
    ) -> None:
        self.batch_index = batch_index
        self.succeeded_ids = succeeded_ids
        self.failures = failures
        super().__init__(f"Failed to send {len(failures)} of {len(failures) + len(succeeded_ids)} messages in batch {batch_index}")

    def details(self) -> ErrorDetails:
        details = super().details()
        details["batch_index"] = self.batch_index
        details["failed_count"] = len(self.failures)
        details["succeeded_count"] = len(self.succeeded_ids)
        return details


class OperationCancelledError(SpillwayError):
    """A unit observed cancellation at one of its checkpoints.

    Raised by siblings after the first real failure; the coordinator never
    reports it as the cause when a real error is known.
    """

    kind = ErrorKind.CANCELLED


class DeadlineExceededError(OperationCancelledError):
    """The overall per-file deadline passed before the unit finished."""

    kind = ErrorKind.DEADLINE_EXCEEDED

    def __init__(self, deadline_seconds: float | None = None) -> None:
        self.deadline_seconds = deadline_seconds
        if deadline_seconds is None:
            super().__init__("Deadline exceeded")
        else:
            super().__init__(f"Deadline of {deadline_seconds:.1f}s exceeded")


class FileProcessingError(SpillwayError):
    """Request-level wrapper naming the file whose pipeline failed."""

    kind = ErrorKind.FILE_PROCESSING

    def __init__(self, path: str, cause: SpillwayError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Processing file {path}: {cause}")

    def details(self) -> ErrorDetails:
        # Report the underlying kind so callers can tell partial from total failure
        details = self.cause.details()
        details["path"] = self.path
        details["error"] = str(self)
        return details
