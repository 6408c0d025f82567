# src/spillway/engine/partitioner.py
"""Split a file's row count into worker-sized ranges.

Pure function: no I/O, no state, no error conditions beyond the
preconditions on its arguments.

    partition(95, 40) -> [0,40) [40,80) [80,95)

Ceiling division covers every row without a separate remainder step; only
the last range may be shorter than rows_per_worker.
"""

from __future__ import annotations

from spillway.contracts.data import RowRange


def range_count(total_rows: int, rows_per_worker: int) -> int:
    """Number of ranges partition() will return."""
    if rows_per_worker < 1:
        raise ValueError(f"rows_per_worker must be >= 1, got {rows_per_worker}")
    if total_rows < 0:
        raise ValueError(f"total_rows must be >= 0, got {total_rows}")
    return (total_rows + rows_per_worker - 1) // rows_per_worker


def partition(total_rows: int, rows_per_worker: int) -> list[RowRange]:
    """Return non-overlapping, gap-free ranges covering ``[0, total_rows)``.

    Args:
        total_rows: Rows in the file (0 yields no ranges)
        rows_per_worker: Maximum rows per range

    Returns:
        Ranges in ascending order

    Raises:
        ValueError: If rows_per_worker < 1 or total_rows < 0
    """
    n_ranges = range_count(total_rows, rows_per_worker)
    return [
        RowRange(
            start=i * rows_per_worker,
            end=min((i + 1) * rows_per_worker, total_rows),
        )
        for i in range(n_ranges)
    ]


def split_range(row_range: RowRange, rows_per_read: int | None) -> list[RowRange]:
    """Split one range into consecutive sub-ranges of at most rows_per_read rows.

    Used to bound memory when a worker's range is read in several slices.
    None returns the range unchanged.
    """
    if rows_per_read is None or rows_per_read >= len(row_range):
        return [row_range]
    return [
        RowRange(start=row_range.start + sub.start, end=row_range.start + sub.end)
        for sub in partition(len(row_range), rows_per_read)
    ]
