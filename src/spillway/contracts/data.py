# src/spillway/contracts/data.py
"""Units of work that flow through the engine.

RowRange and Batch are ephemeral: created by the partitioner and batcher,
consumed once by a single worker, never persisted.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeAlias

# One row from the source. The engine never looks inside it; only the
# publisher's encoder does.
Record: TypeAlias = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class RowRange:
    """Half-open interval of row indices ``[start, end)``.

    Raises:
        ValueError: If start is negative or the range is empty.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"RowRange start must be >= 0, got {self.start}")
        if self.end <= self.start:
            raise ValueError(f"RowRange end must be > start, got [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    @property
    def offset(self) -> int:
        """Row offset for a limit/offset read."""
        return self.start

    @property
    def limit(self) -> int:
        """Row count for a limit/offset read."""
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class Batch:
    """A group of records sized for one publish call.

    Attributes:
        index: Position of this batch within its range (traceability only,
            never used for reassembly).
        records: Records in source order.
        max_size: Capacity the batch was cut for.
        first_row: Absolute row offset of ``records[0]`` in the source file.
        source: Identifier of the file the records came from.
    """

    index: int
    records: Sequence[Record]
    max_size: int
    first_row: int = 0
    source: str = ""
    record_ids: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        # Exceeding the transport limit is a programming error in the batcher
        if not 1 <= len(self.records) <= self.max_size:
            raise ValueError(f"Batch {self.index} holds {len(self.records)} records, must be between 1 and {self.max_size}")
        object.__setattr__(
            self,
            "record_ids",
            tuple(str(self.first_row + i) for i in range(len(self.records))),
        )

    def __len__(self) -> int:
        return len(self.records)

    def entries(self) -> list[tuple[str, Record]]:
        """Pair each record with its batch-unique id (its absolute row number)."""
        return list(zip(self.record_ids, self.records, strict=True))
