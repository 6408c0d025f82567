# src/spillway/plugins/publishers/null_publisher.py
"""Publisher that accepts and discards every record.

Used for dry runs and for measuring source throughput without a queue.
Records are still encoded so encoding failures surface the same way they
would against a real queue.
"""

import threading
from typing import Any

from pydantic import Field

from spillway.contracts import Batch, EncodingFailureError, PublishOutcome
from spillway.core.canonical import encode_record
from spillway.engine.cancellation import CancellationToken
from spillway.plugins.config_base import PluginConfig


class NullPublisherConfig(PluginConfig):
    max_batch_size: int = Field(default=10, ge=1)


class NullPublisher:
    """Count and discard."""

    name = "null"
    plugin_version = "1.0.0"
    requires_aws = False

    def __init__(self, config: dict[str, Any]) -> None:
        cfg = NullPublisherConfig.from_dict(config)
        self.max_batch_size = cfg.max_batch_size
        self._lock = threading.Lock()
        self._published = 0
        self._bytes = 0

    @property
    def published(self) -> int:
        with self._lock:
            return self._published

    @property
    def bytes_encoded(self) -> int:
        with self._lock:
            return self._bytes

    def publish(self, batch: Batch, token: CancellationToken) -> PublishOutcome:
        token.check()
        size = 0
        for record_id, record in batch.entries():
            try:
                size += len(encode_record(record).encode("utf-8"))
            except (TypeError, ValueError) as e:
                raise EncodingFailureError(
                    f"Record {record_id} in batch {batch.index} cannot be encoded: {e}",
                    batch_index=batch.index,
                    record_id=record_id,
                ) from e
        with self._lock:
            self._published += len(batch)
            self._bytes += size
        return PublishOutcome.all_succeeded(batch.record_ids)

    def close(self) -> None:
        pass
