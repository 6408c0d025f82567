# tests/plugins/test_local_publishers.py
"""Tests for the jsonl and null publishers."""

import json
from pathlib import Path

import pytest

from spillway.contracts import Batch, EncodingFailureError, OperationCancelledError
from spillway.engine.cancellation import CancellationToken
from spillway.plugins.publishers import JsonlPublisher, NullPublisher


def _batch(records: list[dict[str, object]], *, first_row: int = 0) -> Batch:
    return Batch(index=0, records=records, max_size=10, first_row=first_row, source="a.parquet")


class TestJsonlPublisher:
    def test_writes_one_line_per_record(self, tmp_path: Path, token: CancellationToken) -> None:
        path = tmp_path / "out" / "records.jsonl"
        publisher = JsonlPublisher({"path": str(path)})

        outcome = publisher.publish(_batch([{"id": 1}, {"id": 2}], first_row=5), token)
        publisher.publish(_batch([{"id": 3}], first_row=7), token)
        publisher.close()

        assert outcome.succeeded == {"5", "6"}
        lines = path.read_text().splitlines()
        assert [json.loads(line) for line in lines] == [{"id": 1}, {"id": 2}, {"id": 3}]

    def test_append_mode_keeps_lines(self, tmp_path: Path, token: CancellationToken) -> None:
        path = tmp_path / "records.jsonl"
        path.write_text('{"id":0}\n')
        publisher = JsonlPublisher({"path": str(path), "mode": "append"})

        publisher.publish(_batch([{"id": 1}]), token)
        publisher.close()

        assert len(path.read_text().splitlines()) == 2

    def test_bad_record_writes_nothing(self, tmp_path: Path, token: CancellationToken) -> None:
        path = tmp_path / "records.jsonl"
        publisher = JsonlPublisher({"path": str(path)})

        with pytest.raises(EncodingFailureError):
            publisher.publish(_batch([{"id": 1}, {"v": float("inf")}]), token)
        publisher.close()

        assert path.read_text() == ""

    def test_publish_after_close(self, tmp_path: Path, token: CancellationToken) -> None:
        publisher = JsonlPublisher({"path": str(tmp_path / "records.jsonl")})
        publisher.close()
        publisher.close()

        with pytest.raises(RuntimeError, match="closed"):
            publisher.publish(_batch([{"id": 1}]), token)

    def test_max_batch_size_configurable(self, tmp_path: Path) -> None:
        publisher = JsonlPublisher({"path": str(tmp_path / "r.jsonl"), "max_batch_size": 500})
        publisher.close()
        assert publisher.max_batch_size == 500


class TestNullPublisher:
    def test_counts_records_and_bytes(self, token: CancellationToken) -> None:
        publisher = NullPublisher({})

        outcome = publisher.publish(_batch([{"id": 1}, {"id": 22}]), token)

        assert outcome.ok
        assert publisher.published == 2
        assert publisher.bytes_encoded == len('{"id":1}') + len('{"id":22}')

    def test_encoding_failures_surface(self, token: CancellationToken) -> None:
        with pytest.raises(EncodingFailureError):
            NullPublisher({}).publish(_batch([{"v": object()}]), token)

    def test_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            NullPublisher({}).publish(_batch([{"id": 1}]), token)
