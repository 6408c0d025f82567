# src/spillway/engine/handler.py
"""RecordPublisherHandler: fetch each requested object and publish its rows.

A request succeeds only if every file succeeds. Files run one after
another; the first failing file fails the whole request and the remaining
files are not started. Files already published stay published.
"""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

import structlog

from spillway.contracts.errors import FileProcessingError, SpillwayError
from spillway.contracts.requests import PublishRequest, PublishResponse
from spillway.contracts.results import ProgressEvent
from spillway.core.config import SpillwaySettings
from spillway.engine.cancellation import CancellationToken
from spillway.engine.pipeline import FilePipeline
from spillway.plugins.aws.s3_fetcher import S3Fetcher
from spillway.plugins.aws.session import AwsClientFactory
from spillway.plugins.manager import PluginManager

logger = structlog.get_logger(__name__)


class RecordPublisherHandler:
    """Serve PublishRequests against one configured pipeline.

    Args:
        pipeline: File pipeline (source, publisher and settings)
        fetcher: Downloads request keys to local files
        work_dir: Parent for per-request temp directories (default: system temp)
    """

    def __init__(
        self,
        pipeline: FilePipeline,
        fetcher: S3Fetcher,
        *,
        work_dir: Path | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._fetcher = fetcher
        self._work_dir = work_dir

    @classmethod
    def from_settings(
        cls,
        settings: SpillwaySettings,
        *,
        manager: PluginManager | None = None,
        work_dir: Path | None = None,
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> RecordPublisherHandler:
        """Build plugins and AWS clients from settings.

        Raises:
            ValueError: Unknown plugin name or batch size over the publisher limit
            PluginConfigError: A plugin rejected its options
        """
        if manager is None:
            manager = PluginManager()
            manager.register_builtin_plugins()
        plugins = manager.instantiate_plugins(settings)
        s3 = AwsClientFactory.from_settings(settings.aws).client("s3", endpoint_url=settings.aws.s3_endpoint_override)
        return cls(
            FilePipeline(plugins.source, plugins.publisher, settings, on_progress=on_progress),
            S3Fetcher(s3, retry=settings.fetch_retry),
            work_dir=work_dir,
        )

    @property
    def pipeline(self) -> FilePipeline:
        return self._pipeline

    def handle(self, request: PublishRequest, token: CancellationToken | None = None) -> PublishResponse:
        """Publish every file named in the request.

        Args:
            request: Bucket and object keys
            token: Request-level cancellation (e.g. the invocation deadline)

        Returns:
            The request's paths, echoed

        Raises:
            FileProcessingError: The first file that failed, wrapping its cause
        """
        self.process(request, token)
        return PublishResponse(paths=list(request.paths))

    def process(self, request: PublishRequest, token: CancellationToken | None = None) -> dict[str, int]:
        """Publish every file named in the request, in order.

        Returns:
            Rows published per key

        Raises:
            FileProcessingError: The first file that failed, wrapping its cause
        """
        rows_by_key: dict[str, int] = {}
        temp_dir = Path(tempfile.mkdtemp(prefix="spillway-", dir=self._work_dir))
        try:
            for key in request.paths:
                rows_by_key[key] = self._process_file(request.bucket, key, temp_dir, token)
        finally:
            try:
                shutil.rmtree(temp_dir)
            except OSError as e:
                logger.warning("failed to remove temp dir", temp_dir=str(temp_dir), error=str(e))
        return rows_by_key

    def _process_file(
        self,
        bucket: str,
        key: str,
        temp_dir: Path,
        token: CancellationToken | None,
    ) -> int:
        log = logger.bind(bucket=bucket, key=key)
        try:
            local_path = self._fetcher.fetch(bucket, key, temp_dir, token)
        except SpillwayError as e:
            log.error("fetch failed", **e.details())
            raise FileProcessingError(key, e) from e

        try:
            result = self._pipeline.run(local_path, token, source_id=f"s3://{bucket}/{key}")
        finally:
            # /tmp is small on serverless runtimes; free it before the next file
            local_path.unlink(missing_ok=True)

        if result.cause is not None:
            raise FileProcessingError(key, result.cause) from result.cause
        log.info("processed file", rows=result.rows_processed)
        return result.rows_processed

    def close(self) -> None:
        """Release the publisher's transport resources."""
        self._pipeline.close()
