"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes are NOT re-exported here - import them from
spillway.core.config.

Import patterns:
    from spillway.contracts import Batch, PipelineResult, RowRange
    from spillway.core.config import SpillwaySettings
"""

from spillway.contracts.data import Batch, Record, RowRange
from spillway.contracts.enums import ErrorKind, PipelineStatus
from spillway.contracts.errors import (
    DeadlineExceededError,
    EncodingFailureError,
    ErrorDetails,
    FileProcessingError,
    OperationCancelledError,
    PartialPublishFailureError,
    QueryFailureError,
    SourceUnavailableError,
    SpillwayError,
    TransportFailureError,
)
from spillway.contracts.requests import PublishRequest, PublishResponse
from spillway.contracts.results import (
    PipelineResult,
    ProgressEvent,
    PublishOutcome,
    RecordFailure,
)

__all__ = [
    "Batch",
    "DeadlineExceededError",
    "EncodingFailureError",
    "ErrorDetails",
    "ErrorKind",
    "FileProcessingError",
    "OperationCancelledError",
    "PartialPublishFailureError",
    "PipelineResult",
    "PipelineStatus",
    "ProgressEvent",
    "PublishOutcome",
    "PublishRequest",
    "PublishResponse",
    "QueryFailureError",
    "Record",
    "RecordFailure",
    "RowRange",
    "SourceUnavailableError",
    "SpillwayError",
    "TransportFailureError",
]
