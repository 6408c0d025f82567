# src/spillway/engine/batcher.py
"""Re-chunk a worker's records into publish-sized batches.

Purely positional slicing: batch i holds records
``[i * max_batch_size, min((i + 1) * max_batch_size, len(records)))``.
Batch order is deterministic but carries no meaning downstream; batches
are dispatched independently.
"""

from __future__ import annotations

from collections.abc import Sequence

from spillway.contracts.data import Batch, Record


def chunk(
    records: Sequence[Record],
    max_batch_size: int,
    *,
    first_row: int = 0,
    source: str = "",
    start_index: int = 0,
) -> list[Batch]:
    """Slice records into batches of at most max_batch_size.

    Args:
        records: Records in source order
        max_batch_size: Transport limit per publish call
        first_row: Absolute row offset of records[0] in the source file
        source: Identifier of the source file, carried on every batch
        start_index: Index assigned to the first batch

    Returns:
        Batches covering every record exactly once (empty for no records)

    Raises:
        ValueError: If max_batch_size < 1
    """
    if max_batch_size < 1:
        raise ValueError(f"max_batch_size must be >= 1, got {max_batch_size}")
    return [
        Batch(
            index=start_index + i,
            records=records[offset : offset + max_batch_size],
            max_size=max_batch_size,
            first_row=first_row + offset,
            source=source,
        )
        for i, offset in enumerate(range(0, len(records), max_batch_size))
    ]
