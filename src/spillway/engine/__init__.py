"""Spillway engine: partitioning, batching and fail-fast fan-out.

Exports:
- partition / split_range: Row counts into worker-sized ranges
- chunk: Records into publish-sized batches
- RangeWorker: One bounded read per range
- Coordinator: Bounded concurrent execution with first-error-wins
- CancellationToken: Cooperative cancellation with deadlines
- FilePipeline / RecordPublisherHandler: import from their modules
  (spillway.engine.pipeline, spillway.engine.handler); they pull in plugins.
"""

from spillway.engine.batcher import chunk
from spillway.engine.cancellation import CancellationToken, Clock, MockClock, SystemClock
from spillway.engine.coordinator import Coordinator, ErrorCollector, FunctionUnit, WorkUnit
from spillway.engine.partitioner import partition, range_count, split_range
from spillway.engine.publishing import BatchPublishUnit
from spillway.engine.worker import RangeWorker

__all__ = [
    "BatchPublishUnit",
    "CancellationToken",
    "Clock",
    "Coordinator",
    "ErrorCollector",
    "FunctionUnit",
    "MockClock",
    "RangeWorker",
    "SystemClock",
    "WorkUnit",
    "chunk",
    "partition",
    "range_count",
    "split_range",
]
