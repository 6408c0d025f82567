# src/spillway/plugins/protocols.py
"""Plugin protocols defining the contracts for each plugin type.

These protocols define what methods plugins must implement.
They're used for type checking, not runtime enforcement (that's pluggy's job).

Plugin Types:
- RowSource: Opens a local columnar file and answers count / range queries
- Publisher: Sends a batch of records to a downstream queue
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

if TYPE_CHECKING:
    from spillway.contracts import Batch, PublishOutcome, Record
    from spillway.engine.cancellation import CancellationToken


@runtime_checkable
class RowSourceHandle(Protocol):
    """An open, read-only view of one local file.

    Handles hold no mutable state shared between calls: every read_range()
    is an independent query, so one handle is safe to use from many
    threads at once. The engine calls close() once all range units of the
    file have finished.
    """

    path: str

    def count(self) -> int:
        """Total number of rows in the file.

        Raises:
            QueryFailureError: If the count cannot be determined
        """
        ...

    def read_range(self, offset: int, limit: int) -> list[Record]:
        """Return up to ``limit`` rows starting at row ``offset``, in source order.

        Raises:
            QueryFailureError: If the read fails
        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class RowSourceProtocol(Protocol):
    """Protocol for row source plugins.

    Lifecycle:
    1. __init__(config) - Plugin instantiation
    2. open(path) - Once per file; returns a handle
    3. handle.count() / handle.read_range() - Concurrently, per range
    4. handle.close() - After every range unit has finished

    Example:
        class ParquetRowSource:
            name = "parquet"

            def open(self, path: Path) -> RowSourceHandle:
                return ParquetHandle(path)
    """

    name: ClassVar[str]
    plugin_version: ClassVar[str]

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize with configuration."""
        ...

    def open(self, path: Path) -> RowSourceHandle:
        """Open a file for counting and range reads.

        Raises:
            SourceUnavailableError: If the file cannot be opened at all
        """
        ...


@runtime_checkable
class PublisherProtocol(Protocol):
    """Protocol for publisher plugins.

    publish() is called concurrently from several threads, one batch per
    call. The publisher reports per-record results; it never retries.

    Attributes:
        max_batch_size: Hard per-call record limit of the transport. The
            pipeline refuses to start if the configured batch size exceeds it.
        requires_aws: If True, instantiate_plugins() passes the shared
            AWS settings through the plugin config.
    """

    name: ClassVar[str]
    plugin_version: ClassVar[str]
    requires_aws: ClassVar[bool]
    max_batch_size: int

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize with configuration."""
        ...

    def publish(self, batch: Batch, token: CancellationToken) -> PublishOutcome:
        """Publish one batch.

        Returns:
            Outcome listing accepted and rejected record ids

        Raises:
            TransportFailureError: The call itself failed
            EncodingFailureError: A record could not be serialized
            OperationCancelledError: The token fired before the call
        """
        ...

    def close(self) -> None:
        """Release transport resources. Called once after the last publish."""
        ...
