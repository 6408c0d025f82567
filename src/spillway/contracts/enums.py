# src/spillway/contracts/enums.py
"""Status codes and kinds used across subsystem boundaries."""

from enum import StrEnum


class PipelineStatus(StrEnum):
    """Terminal state of one file's partition-and-publish run."""

    COMPLETED = "completed"
    FAILED = "failed"


class ErrorKind(StrEnum):
    """Classification of pipeline failures.

    Used in structured log payloads and CLI output so that a transport
    outage and a partially rejected batch are never reported the same way.
    """

    SOURCE_UNAVAILABLE = "source_unavailable"
    QUERY_FAILURE = "query_failure"
    ENCODING_FAILURE = "encoding_failure"
    TRANSPORT_FAILURE = "transport_failure"
    PARTIAL_PUBLISH_FAILURE = "partial_publish_failure"
    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    FILE_PROCESSING = "file_processing"
