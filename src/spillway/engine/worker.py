# src/spillway/engine/worker.py
"""RangeWorker: exactly one bounded read per range.

The worker is the only engine component that touches the row source. It
never retries: a failed read is reported once, carrying the range, and the
coordinator decides what happens next.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from spillway.contracts.data import Record, RowRange
from spillway.contracts.errors import QueryFailureError, SpillwayError

if TYPE_CHECKING:
    from spillway.engine.cancellation import CancellationToken
    from spillway.plugins.protocols import RowSourceHandle

logger = structlog.get_logger(__name__)


class RangeWorker:
    """Read one row range from a shared source handle.

    Args:
        handle: Open source handle; safe for concurrent reads
    """

    def __init__(self, handle: RowSourceHandle) -> None:
        self._handle = handle

    def process(self, row_range: RowRange, token: CancellationToken) -> list[Record]:
        """Read ``row_range`` in source order.

        Args:
            row_range: Rows to read
            token: Checked once, before the read

        Returns:
            Exactly len(row_range) records

        Raises:
            OperationCancelledError: Token fired before the read started
            QueryFailureError: The read failed or returned too few rows
        """
        token.check()
        try:
            records = self._handle.read_range(row_range.offset, row_range.limit)
        except QueryFailureError as e:
            if e.row_range is not None:
                raise
            raise QueryFailureError(str(e), row_range=row_range) from e
        except SpillwayError:
            raise
        except Exception as e:
            raise QueryFailureError(f"Reading {self._handle.path} failed: {e}", row_range=row_range) from e

        if len(records) != len(row_range):
            # A short read means the file changed or the count lied; publishing it would silently drop rows
            raise QueryFailureError(
                f"Read of {self._handle.path} returned {len(records)} rows, expected {len(row_range)}",
                row_range=row_range,
            )

        logger.debug("range read", path=self._handle.path, start=row_range.start, end=row_range.end)
        return records
