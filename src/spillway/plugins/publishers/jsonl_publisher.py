# src/spillway/plugins/publishers/jsonl_publisher.py
"""JSONL publisher: one line per record in a local file.

Stands in for the queue in local runs. Line order across batches is the
order publish() calls acquire the file lock, which is not source order.
"""

import threading
from pathlib import Path
from typing import IO, Any, Literal

from pydantic import Field

from spillway.contracts import Batch, EncodingFailureError, PublishOutcome
from spillway.core.canonical import encode_record
from spillway.engine.cancellation import CancellationToken
from spillway.plugins.config_base import PluginConfig


class JsonlPublisherConfig(PluginConfig):
    """Configuration for the jsonl publisher."""

    path: Path = Field(description="Output file")
    mode: Literal["write", "append"] = Field(default="write", description="Truncate or append to an existing file")
    encoding: str = "utf-8"
    max_batch_size: int = Field(default=10, ge=1)


class JsonlPublisher:
    """Append each record as a JSON line.

    Config options:
        path: Output file (required)
        mode: "write" truncates, "append" keeps existing lines (default: write)
        encoding: File encoding (default: utf-8)
        max_batch_size: Records per call (default: 10)
    """

    name = "jsonl"
    plugin_version = "1.0.0"
    requires_aws = False

    def __init__(self, config: dict[str, Any]) -> None:
        cfg = JsonlPublisherConfig.from_dict(config)
        self.max_batch_size = cfg.max_batch_size
        self._path = cfg.path
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file: IO[str] | None = open(  # noqa: SIM115 - closed in close()
            self._path,
            "a" if cfg.mode == "append" else "w",
            encoding=cfg.encoding,
        )

    @property
    def path(self) -> Path:
        return self._path

    def publish(self, batch: Batch, token: CancellationToken) -> PublishOutcome:
        token.check()
        # Encode everything before writing so a bad record leaves no partial batch behind
        lines: list[str] = []
        for record_id, record in batch.entries():
            try:
                lines.append(encode_record(record))
            except (TypeError, ValueError) as e:
                raise EncodingFailureError(
                    f"Record {record_id} in batch {batch.index} cannot be encoded: {e}",
                    batch_index=batch.index,
                    record_id=record_id,
                ) from e

        with self._lock:
            if self._file is None:
                raise RuntimeError(f"JsonlPublisher for {self._path} is closed")
            self._file.write("\n".join(lines) + "\n")
            self._file.flush()
        return PublishOutcome.all_succeeded(batch.record_ids)

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None
