# src/spillway/engine/pipeline.py
"""FilePipeline: partition one local file and publish every row.

    count -> partition -> N range units (bounded, fail-fast)
                            each: read -> chunk -> M batch units (bounded, fail-fast)

Two levels of Coordinator share one cancellation tree. A failing batch
cancels its range's publish scope, surfaces as the range unit's error and
then cancels the file scope, so sibling ranges stop at their next read or
publish.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from spillway.contracts.data import RowRange
from spillway.contracts.errors import QueryFailureError, SourceUnavailableError
from spillway.contracts.results import PipelineResult, ProgressEvent
from spillway.core.config import SpillwaySettings
from spillway.engine.batcher import chunk
from spillway.engine.cancellation import DEFAULT_CLOCK, CancellationToken, Clock
from spillway.engine.coordinator import Coordinator
from spillway.engine.partitioner import partition, split_range
from spillway.engine.publishing import BatchPublishUnit
from spillway.engine.worker import RangeWorker

if TYPE_CHECKING:
    from spillway.plugins.protocols import PublisherProtocol, RowSourceProtocol

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RangeUnit:
    """Read one range and publish it in batches.

    With ``rows_per_read`` set the range is read in consecutive slices so at
    most one slice of records is held in memory at a time.
    """

    row_range: RowRange
    worker: RangeWorker
    publisher: PublisherProtocol
    source: str
    max_batch_size: int
    publish_concurrency: int
    rows_per_read: int | None = None
    max_errors: int = 1
    clock: Clock = DEFAULT_CLOCK

    @property
    def name(self) -> str:
        return f"rows-{self.row_range.start}-{self.row_range.end}"

    def run(self, token: CancellationToken) -> int:
        """Returns the number of records published.

        Raises:
            SpillwayError: The first read or publish failure in this range
        """
        coordinator = Coordinator(max_errors=self.max_errors, clock=self.clock, name=f"publish-{self.row_range.start}")
        published = 0
        batch_index = 0
        for sub_range in split_range(self.row_range, self.rows_per_read):
            records = self.worker.process(sub_range, token)
            batches = chunk(
                records,
                self.max_batch_size,
                first_row=sub_range.start,
                source=self.source,
                start_index=batch_index,
            )
            batch_index += len(batches)

            result = coordinator.run(
                [BatchPublishUnit(batch, self.publisher) for batch in batches],
                self.publish_concurrency,
                token,
            )
            if result.cause is not None:
                for extra in result.suppressed:
                    logger.warning("additional publish failure", unit=self.name, **extra.details())
                raise result.cause
            published += result.rows_processed
        return published


class FilePipeline:
    """Publish every row of local files with one source and one publisher.

    Args:
        source: Row source plugin used to open each file
        publisher: Publisher plugin shared by all batches
        settings: Partitioning, concurrency and deadline settings
        on_progress: Called after each range unit finishes
        clock: Time source for deadlines and progress

    Raises:
        ValueError: If the configured batch size exceeds the publisher's limit
    """

    def __init__(
        self,
        source: RowSourceProtocol,
        publisher: PublisherProtocol,
        settings: SpillwaySettings | None = None,
        *,
        on_progress: Callable[[ProgressEvent], None] | None = None,
        clock: Clock = DEFAULT_CLOCK,
    ) -> None:
        self._settings = settings if settings is not None else SpillwaySettings()
        self._source = source
        self._publisher = publisher
        self._on_progress = on_progress
        self._clock = clock

        batch_size = self._settings.partitioning.max_batch_size
        if batch_size > publisher.max_batch_size:
            raise ValueError(
                f"max_batch_size {batch_size} exceeds the {publisher.name} publisher's limit of {publisher.max_batch_size}"
            )

    @property
    def settings(self) -> SpillwaySettings:
        return self._settings

    def close(self) -> None:
        """Close the publisher. Call once, after the last file."""
        self._publisher.close()

    def _file_token(self, token: CancellationToken | None) -> CancellationToken:
        deadline = self._settings.deadline_seconds
        if token is None:
            return CancellationToken(deadline_seconds=deadline, clock=self._clock)
        if deadline is None:
            return token
        return CancellationToken(deadline_seconds=deadline, clock=self._clock, parent=token)

    def run(
        self,
        path: Path,
        token: CancellationToken | None = None,
        *,
        source_id: str | None = None,
    ) -> PipelineResult:
        """Publish every row of ``path``.

        Args:
            path: Local file to read
            token: Caller's cancellation token (e.g. a request deadline)
            source_id: Stable identity of the file carried on every batch
                (default: ``path`` as given). Must not change between runs of
                the same file: FIFO deduplication ids derive from it.

        Returns:
            COMPLETED with the row count, or FAILED with the first error

        Raises:
            Exception: Bugs inside a unit (anything outside the error taxonomy)
        """
        source = source_id if source_id is not None else str(path)
        log = logger.bind(path=str(path), source=source)
        partitioning = self._settings.partitioning
        concurrency = self._settings.concurrency

        try:
            handle = self._source.open(path)
        except SourceUnavailableError as e:
            log.error("source unavailable", **e.details())
            return PipelineResult.failed(e)

        try:
            try:
                total_rows = handle.count()
            except QueryFailureError as e:
                log.error("row count failed", **e.details())
                return PipelineResult.failed(e)

            ranges = partition(total_rows, partitioning.rows_per_worker)
            if not ranges:
                log.info("file has no rows")
                return PipelineResult.completed(0)

            worker = RangeWorker(handle)
            units = [
                RangeUnit(
                    row_range=row_range,
                    worker=worker,
                    publisher=self._publisher,
                    source=source,
                    max_batch_size=partitioning.max_batch_size,
                    publish_concurrency=concurrency.publish_concurrency,
                    rows_per_read=partitioning.rows_per_read,
                    max_errors=concurrency.max_errors,
                    clock=self._clock,
                )
                for row_range in ranges
            ]
            range_concurrency = concurrency.range_concurrency(len(ranges))
            log.info(
                "publishing file",
                total_rows=total_rows,
                ranges=len(ranges),
                range_concurrency=range_concurrency,
                publish_concurrency=concurrency.publish_concurrency,
                max_batch_size=partitioning.max_batch_size,
            )

            coordinator = Coordinator(
                max_errors=concurrency.max_errors,
                on_progress=self._on_progress,
                clock=self._clock,
                name="ranges",
            )
            result = coordinator.run(units, range_concurrency, self._file_token(token))
        finally:
            handle.close()

        if result.cause is not None:
            log.error("file failed", rows_processed=result.rows_processed, **result.cause.details())
        else:
            log.info("file published", rows_processed=result.rows_processed)
        return result
