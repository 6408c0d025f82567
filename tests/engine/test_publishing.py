# tests/engine/test_publishing.py
"""Tests for BatchPublishUnit: outcome to error conversion."""

import pytest

from spillway.contracts import (
    Batch,
    ErrorKind,
    OperationCancelledError,
    PartialPublishFailureError,
    TransportFailureError,
)
from spillway.engine.cancellation import CancellationToken
from spillway.engine.publishing import BatchPublishUnit
from tests.fixtures.plugins import RecordingPublisher, make_rows


def _batch(first_row: int = 0, size: int = 10, index: int = 0) -> Batch:
    return Batch(index=index, records=make_rows(size), max_size=10, first_row=first_row, source="a.parquet")


class TestBatchPublishUnit:
    def test_returns_record_count(self, token: CancellationToken, publisher: RecordingPublisher) -> None:
        assert BatchPublishUnit(_batch(size=7), publisher).run(token) == 7
        assert len(publisher.batches) == 1

    def test_name_includes_batch_index(self, publisher: RecordingPublisher) -> None:
        assert BatchPublishUnit(_batch(index=12), publisher).name == "batch-12"

    def test_8_ok_2_rejected_is_partial_failure(self, token: CancellationToken) -> None:
        publisher = RecordingPublisher(reject_rows=[3, 7])

        with pytest.raises(PartialPublishFailureError) as exc_info:
            BatchPublishUnit(_batch(), publisher).run(token)

        error = exc_info.value
        assert error.kind == ErrorKind.PARTIAL_PUBLISH_FAILURE
        assert not isinstance(error, TransportFailureError)
        assert {f.id for f in error.failures} == {"3", "7"}
        assert len(error.succeeded_ids) == 8
        assert str(error) == "Failed to send 2 of 10 messages in batch 0"
        assert error.details()["failed_count"] == 2

    def test_transport_failure_propagates(self, token: CancellationToken) -> None:
        publisher = RecordingPublisher(transport_fail_rows=[0])

        with pytest.raises(TransportFailureError) as exc_info:
            BatchPublishUnit(_batch(), publisher).run(token)

        assert exc_info.value.kind == ErrorKind.TRANSPORT_FAILURE

    def test_cancelled_token_skips_publish(self, publisher: RecordingPublisher) -> None:
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            BatchPublishUnit(_batch(), publisher).run(token)

        assert publisher.batches == []
