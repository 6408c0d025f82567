# tests/contracts/test_contracts.py
"""Tests for data, result, error and request contracts."""

import pytest
from pydantic import ValidationError

from spillway.contracts import (
    DeadlineExceededError,
    EncodingFailureError,
    ErrorKind,
    FileProcessingError,
    OperationCancelledError,
    PartialPublishFailureError,
    PipelineResult,
    PipelineStatus,
    PublishOutcome,
    PublishRequest,
    PublishResponse,
    QueryFailureError,
    RecordFailure,
    RowRange,
    SourceUnavailableError,
    SpillwayError,
    TransportFailureError,
)


class TestRowRange:
    def test_length_offset_limit(self) -> None:
        r = RowRange(40, 80)
        assert len(r) == 40
        assert r.offset == 40
        assert r.limit == 40

    @pytest.mark.parametrize(("start", "end"), [(5, 5), (5, 4), (-1, 3)])
    def test_invalid_ranges_rejected(self, start: int, end: int) -> None:
        with pytest.raises(ValueError, match="RowRange"):
            RowRange(start, end)

    def test_frozen(self) -> None:
        r = RowRange(0, 1)
        with pytest.raises(AttributeError):
            r.start = 3  # type: ignore[misc]


class TestPublishOutcome:
    def test_all_succeeded(self) -> None:
        outcome = PublishOutcome.all_succeeded(("1", "2"))
        assert outcome.ok
        assert outcome.attempted == 2

    def test_failed_records_not_ok(self) -> None:
        outcome = PublishOutcome(succeeded=frozenset({"1"}), failed=(RecordFailure(id="2", reason="throttled"),))
        assert not outcome.ok
        assert outcome.attempted == 2


class TestPipelineResult:
    def test_completed(self) -> None:
        result = PipelineResult.completed(12)
        assert result.succeeded
        assert result.status == PipelineStatus.COMPLETED
        assert result.cause is None

    def test_failed_requires_cause(self) -> None:
        with pytest.raises(ValueError, match="requires a cause"):
            PipelineResult(status=PipelineStatus.FAILED)

    def test_completed_cannot_carry_errors(self) -> None:
        with pytest.raises(ValueError, match="cannot carry errors"):
            PipelineResult(status=PipelineStatus.COMPLETED, cause=QueryFailureError("x"))

    def test_failed_keeps_progress(self) -> None:
        cause = QueryFailureError("x")
        result = PipelineResult.failed(cause, rows_processed=40)
        assert not result.succeeded
        assert result.rows_processed == 40
        assert result.cause is cause


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (SourceUnavailableError("a.parquet", "gone"), ErrorKind.SOURCE_UNAVAILABLE),
            (QueryFailureError("bad read"), ErrorKind.QUERY_FAILURE),
            (EncodingFailureError("nan"), ErrorKind.ENCODING_FAILURE),
            (TransportFailureError("timeout"), ErrorKind.TRANSPORT_FAILURE),
            (PartialPublishFailureError(0, frozenset(), ()), ErrorKind.PARTIAL_PUBLISH_FAILURE),
            (OperationCancelledError("Cancelled"), ErrorKind.CANCELLED),
            (DeadlineExceededError(5.0), ErrorKind.DEADLINE_EXCEEDED),
        ],
    )
    def test_kinds(self, error: SpillwayError, kind: ErrorKind) -> None:
        assert error.kind == kind
        assert error.details()["kind"] == kind.value
        assert error.details()["error_type"] == type(error).__name__

    def test_partial_is_not_transport(self) -> None:
        error = PartialPublishFailureError(3, frozenset({"1"}), (RecordFailure(id="2", reason="x"),))
        assert not isinstance(error, TransportFailureError)

    def test_deadline_is_a_cancellation(self) -> None:
        assert isinstance(DeadlineExceededError(), OperationCancelledError)

    def test_query_failure_range_details(self) -> None:
        details = QueryFailureError("bad", row_range=RowRange(10, 20)).details()
        assert details["start"] == 10
        assert details["end"] == 20

    def test_file_processing_reports_underlying_kind(self) -> None:
        cause = TransportFailureError("timeout", batch_index=4)
        error = FileProcessingError("a.parquet", cause)

        details = error.details()
        assert details["kind"] == ErrorKind.TRANSPORT_FAILURE
        assert details["path"] == "a.parquet"
        assert details["batch_index"] == 4
        assert "a.parquet" in details["error"]


class TestPublishRequest:
    def test_valid(self) -> None:
        request = PublishRequest.model_validate({"bucket": "records", "paths": ["a.parquet"]})
        assert request.paths == ["a.parquet"]

    def test_blank_bucket_rejected(self) -> None:
        with pytest.raises(ValidationError, match="bucket"):
            PublishRequest(bucket="  ", paths=[])

    def test_blank_path_rejected(self) -> None:
        with pytest.raises(ValidationError, match="empty keys"):
            PublishRequest(bucket="records", paths=["a.parquet", ""])

    def test_unknown_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PublishRequest.model_validate({"bucket": "records", "paths": [], "queue": "x"})

    def test_response_dump(self) -> None:
        assert PublishResponse(paths=["a"]).model_dump() == {"paths": ["a"]}
