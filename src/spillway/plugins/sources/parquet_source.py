# src/spillway/plugins/sources/parquet_source.py
"""Parquet row source backed by pyarrow.

Row counts come from the file footer, never from a scan. A range read
selects only the row groups overlapping the range, reads them into an
Arrow table, slices it to the exact rows and converts to Python dicts.

Every read opens its own ParquetFile: pyarrow readers are not safe to
share between threads, and a handle is read by many range workers at once.
"""

from __future__ import annotations

import bisect
import logging
from pathlib import Path
from typing import Any

import pyarrow as pa
import pyarrow.parquet as pq
from pydantic import Field

from spillway.contracts import QueryFailureError, Record, SourceUnavailableError
from spillway.plugins.config_base import PluginConfig

logger = logging.getLogger(__name__)


class ParquetSourceConfig(PluginConfig):
    """Configuration for the parquet row source."""

    use_threads: bool = Field(
        default=False,
        description="Let pyarrow decode columns in parallel inside one read",
    )
    columns: list[str] | None = Field(default=None, description="Project to these columns (None: all)")


class ParquetHandle:
    """Open view of one Parquet file.

    Holds only immutable footer metadata (row-group boundaries), so it can
    be shared freely between threads.
    """

    def __init__(self, path: Path, config: ParquetSourceConfig) -> None:
        self.path = str(path)
        self._config = config
        try:
            parquet_file = pq.ParquetFile(path)
        except (OSError, pa.ArrowException) as e:
            raise SourceUnavailableError(self.path, str(e)) from e
        try:
            metadata = parquet_file.metadata
            group_rows = [metadata.row_group(i).num_rows for i in range(metadata.num_row_groups)]
            self._num_rows: int = metadata.num_rows
        finally:
            parquet_file.close()

        # _group_starts[i] is the absolute row index of row group i's first row
        self._group_starts: list[int] = []
        position = 0
        for rows in group_rows:
            self._group_starts.append(position)
            position += rows
        self._group_rows = group_rows

    def count(self) -> int:
        return self._num_rows

    def _groups_for(self, offset: int, limit: int) -> list[int]:
        end = offset + limit
        first = max(bisect.bisect_right(self._group_starts, offset) - 1, 0)
        groups = []
        for i in range(first, len(self._group_starts)):
            if self._group_starts[i] >= end:
                break
            if self._group_rows[i] > 0:
                groups.append(i)
        return groups

    def read_range(self, offset: int, limit: int) -> list[Record]:
        """Read rows ``[offset, offset + limit)`` clipped to the file.

        Raises:
            QueryFailureError: If pyarrow cannot read the row groups
        """
        if offset < 0 or limit < 1:
            raise QueryFailureError(f"Invalid read of {self.path}: offset={offset} limit={limit}")
        if offset >= self._num_rows:
            return []

        groups = self._groups_for(offset, limit)
        try:
            parquet_file = pq.ParquetFile(self.path)
            try:
                table = parquet_file.read_row_groups(
                    groups,
                    columns=self._config.columns,
                    use_threads=self._config.use_threads,
                )
            finally:
                parquet_file.close()
        except (OSError, pa.ArrowException) as e:
            raise QueryFailureError(f"Reading {self.path} failed: {e}") from e

        skip = offset - self._group_starts[groups[0]]
        rows: list[Record] = table.slice(skip, limit).to_pylist()
        logger.debug("Read %d rows from %s at offset %d (%d row groups)", len(rows), self.path, offset, len(groups))
        return rows

    def close(self) -> None:
        # Nothing held open between reads
        pass


class ParquetRowSource:
    """Row source for local Parquet files.

    Config options:
        use_threads: Parallel column decoding within a single read (default: False)
        columns: Column projection (default: all columns)
    """

    name = "parquet"
    plugin_version = "1.0.0"

    def __init__(self, config: dict[str, Any]) -> None:
        self._config = ParquetSourceConfig.from_dict(config)

    def open(self, path: Path) -> ParquetHandle:
        """Read the footer of ``path``.

        Raises:
            SourceUnavailableError: If the file is missing or not Parquet
        """
        return ParquetHandle(path, self._config)
