# tests/engine/test_handler.py
"""Tests for RecordPublisherHandler (fetch + pipeline per requested key)."""

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from spillway.contracts import (
    ErrorKind,
    FileProcessingError,
    PublishRequest,
    QueryFailureError,
    SourceUnavailableError,
)
from spillway.core.config import PublisherSettings, SpillwaySettings
from spillway.engine.cancellation import CancellationToken
from spillway.engine.handler import RecordPublisherHandler
from spillway.engine.pipeline import FilePipeline
from spillway.plugins.aws.s3_fetcher import S3Fetcher
from spillway.plugins.aws.sqs_publisher import SqsPublisher
from spillway.plugins.sources.parquet_source import ParquetRowSource
from tests.fixtures.plugins import ListHandle, ListSource, RecordingPublisher, make_rows


def _fake_fetcher(fail_keys: dict[str, Exception] | None = None) -> MagicMock:
    """S3Fetcher mock that writes an empty local file per key."""
    fetcher = MagicMock(spec=S3Fetcher)
    fail_keys = fail_keys or {}

    def fetch(bucket: str, key: str, dest_dir: Path, token: CancellationToken | None = None) -> Path:
        if key in fail_keys:
            raise fail_keys[key]
        dest = dest_dir / key
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(b"")
        return dest

    fetcher.fetch.side_effect = fetch
    return fetcher


class _PerFileSource(ListSource):
    """Hands out a different handle per file name."""

    def __init__(self, handles: dict[str, ListHandle]) -> None:
        super().__init__()
        self.handles = handles

    def open(self, path: Path) -> ListHandle:
        self.opened.append(path)
        return self.handles[path.name]


class TestRecordPublisherHandler:
    def test_echoes_paths_on_success(self, tmp_path: Path) -> None:
        publisher = RecordingPublisher()
        source = _PerFileSource({"a.parquet": ListHandle(make_rows(25)), "b.parquet": ListHandle(make_rows(5))})
        handler = RecordPublisherHandler(FilePipeline(source, publisher), _fake_fetcher(), work_dir=tmp_path)

        response = handler.handle(PublishRequest(bucket="records", paths=["a.parquet", "b.parquet"]))

        assert response.paths == ["a.parquet", "b.parquet"]
        assert len(publisher.published_ids) == 30

    def test_temp_dir_removed(self, tmp_path: Path) -> None:
        fetcher = _fake_fetcher()
        source = _PerFileSource({"a.parquet": ListHandle(make_rows(3))})
        handler = RecordPublisherHandler(FilePipeline(source, RecordingPublisher()), fetcher, work_dir=tmp_path)

        handler.handle(PublishRequest(bucket="records", paths=["a.parquet"]))

        dest_dir = fetcher.fetch.call_args.args[2]
        assert dest_dir.parent == tmp_path
        assert not dest_dir.exists()

    def test_first_failing_file_fails_request(self, tmp_path: Path) -> None:
        fetcher = _fake_fetcher()
        source = _PerFileSource(
            {
                "a.parquet": ListHandle(make_rows(10), fail_offsets=[0]),
                "b.parquet": ListHandle(make_rows(10)),
            }
        )
        handler = RecordPublisherHandler(FilePipeline(source, RecordingPublisher()), fetcher, work_dir=tmp_path)

        with pytest.raises(FileProcessingError) as exc_info:
            handler.handle(PublishRequest(bucket="records", paths=["a.parquet", "b.parquet"]))

        error = exc_info.value
        assert error.path == "a.parquet"
        assert isinstance(error.cause, QueryFailureError)
        assert error.details()["kind"] == ErrorKind.QUERY_FAILURE
        assert fetcher.fetch.call_count == 1
        assert list(tmp_path.iterdir()) == []

    def test_fetch_failure_wraps_source_unavailable(self, tmp_path: Path) -> None:
        missing = SourceUnavailableError("s3://records/gone.parquet", "404: Not Found")
        fetcher = _fake_fetcher({"gone.parquet": missing})
        handler = RecordPublisherHandler(FilePipeline(ListSource(), RecordingPublisher()), fetcher, work_dir=tmp_path)

        with pytest.raises(FileProcessingError) as exc_info:
            handler.handle(PublishRequest(bucket="records", paths=["gone.parquet"]))

        assert exc_info.value.cause is missing
        assert exc_info.value.details()["kind"] == ErrorKind.SOURCE_UNAVAILABLE
        assert exc_info.value.details()["path"] == "gone.parquet"

    def test_token_passed_to_fetch(self, tmp_path: Path) -> None:
        fetcher = _fake_fetcher()
        source = _PerFileSource({"a.parquet": ListHandle(make_rows(1))})
        handler = RecordPublisherHandler(FilePipeline(source, RecordingPublisher()), fetcher, work_dir=tmp_path)
        token = CancellationToken()

        handler.handle(PublishRequest(bucket="records", paths=["a.parquet"]), token)

        assert fetcher.fetch.call_args.args[3] is token

    def test_empty_request(self, tmp_path: Path) -> None:
        fetcher = _fake_fetcher()
        handler = RecordPublisherHandler(FilePipeline(ListSource(), RecordingPublisher()), fetcher, work_dir=tmp_path)

        assert handler.handle(PublishRequest(bucket="records", paths=[])).paths == []
        fetcher.fetch.assert_not_called()

    def test_process_returns_rows_per_key(self, tmp_path: Path) -> None:
        source = _PerFileSource({"a.parquet": ListHandle(make_rows(25)), "b.parquet": ListHandle(make_rows(0))})
        handler = RecordPublisherHandler(FilePipeline(source, RecordingPublisher()), _fake_fetcher(), work_dir=tmp_path)

        rows = handler.process(PublishRequest(bucket="records", paths=["a.parquet", "b.parquet"]))

        assert rows == {"a.parquet": 25, "b.parquet": 0}

    def test_batches_carry_object_uri(self, tmp_path: Path) -> None:
        publisher = RecordingPublisher()
        source = _PerFileSource({"a.parquet": ListHandle(make_rows(3))})
        handler = RecordPublisherHandler(FilePipeline(source, publisher), _fake_fetcher(), work_dir=tmp_path)

        handler.handle(PublishRequest(bucket="records", paths=["a.parquet"]))

        assert {batch.source for batch in publisher.batches} == {"s3://records/a.parquet"}


def _parquet_fetcher(n: int) -> MagicMock:
    """S3Fetcher mock that writes a real Parquet file of ``n`` ids per key."""
    fetcher = MagicMock(spec=S3Fetcher)

    def fetch(bucket: str, key: str, dest_dir: Path, token: CancellationToken | None = None) -> Path:
        dest = dest_dir / key
        dest.parent.mkdir(parents=True, exist_ok=True)
        pq.write_table(pa.table({"id": list(range(n))}), dest)
        return dest

    fetcher.fetch.side_effect = fetch
    return fetcher


def _accept_all(QueueUrl: str, Entries: list[dict[str, str]]) -> dict[str, Any]:
    return {"Successful": [{"Id": e["Id"]} for e in Entries], "Failed": []}


class TestFifoRedelivery:
    """Re-running a request must reproduce the FIFO ids of the first run."""

    def _sent_entries(self, client: MagicMock) -> list[dict[str, str]]:
        return [e for c in client.send_message_batch.call_args_list for e in c.kwargs["Entries"]]

    def test_same_request_twice_has_equal_dedup_ids(self, tmp_path: Path) -> None:
        client = MagicMock()
        client.send_message_batch.side_effect = _accept_all
        publisher = SqsPublisher({"queue_url": "https://sqs.us-east-1.amazonaws.com/123/records.fifo"}, client=client)
        handler = RecordPublisherHandler(
            FilePipeline(ParquetRowSource({}), publisher), _parquet_fetcher(15), work_dir=tmp_path
        )
        request = PublishRequest(bucket="records", paths=["exports/a.parquet"])

        handler.handle(request)
        first = self._sent_entries(client)
        client.send_message_batch.reset_mock()
        handler.handle(request)
        second = self._sent_entries(client)

        assert len(first) == 15
        assert sorted(e["MessageDeduplicationId"] for e in first) == sorted(e["MessageDeduplicationId"] for e in second)
        assert {e["MessageGroupId"] for e in first + second} == {"s3://records/exports/a.parquet"}


class TestFromSettings:
    def test_builds_pipeline_and_fetcher(self) -> None:
        settings = SpillwaySettings(publisher=PublisherSettings(plugin="null"))
        factory: Any = MagicMock()

        with patch("spillway.engine.handler.AwsClientFactory") as factory_cls:
            factory_cls.from_settings.return_value = factory
            handler = RecordPublisherHandler.from_settings(settings)

        factory.client.assert_called_once_with("s3", endpoint_url=None)
        assert handler.pipeline.settings is settings

    def test_progress_callback_reaches_pipeline(self) -> None:
        settings = SpillwaySettings(publisher=PublisherSettings(plugin="null"))
        events: list[Any] = []

        with (
            patch("spillway.engine.handler.AwsClientFactory"),
            patch("spillway.engine.handler.FilePipeline") as pipeline_cls,
        ):
            RecordPublisherHandler.from_settings(settings, on_progress=events.append)

        assert pipeline_cls.call_args.kwargs["on_progress"] == events.append
