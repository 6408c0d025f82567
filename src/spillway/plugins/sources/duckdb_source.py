# src/spillway/plugins/sources/duckdb_source.py
"""Parquet row source that queries files through DuckDB.

Each count and range read is an independent SQL query on its own cursor:

    SELECT * FROM read_parquet('<path>') LIMIT <limit> OFFSET <offset>

DuckDB preserves insertion order for read_parquet scans, so LIMIT/OFFSET
windows over the same file are disjoint and ordered.

duckdb is an optional dependency (``pip install spillway[duckdb]``); it is
imported when the first file is opened.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import Field

from spillway.contracts import QueryFailureError, Record, SourceUnavailableError
from spillway.plugins.config_base import PluginConfig

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)


class DuckDBSourceConfig(PluginConfig):
    """Configuration for the duckdb row source."""

    threads: int | None = Field(default=None, ge=1, description="DuckDB worker threads per connection (None: DuckDB default)")
    memory_limit: str | None = Field(default=None, description="DuckDB memory limit, e.g. '1GB'")


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class DuckDBHandle:
    """One in-memory DuckDB connection bound to one Parquet file.

    Queries run on per-call cursors; the connection itself is only used to
    create cursors and is closed with the handle.
    """

    def __init__(self, path: Path, connection: duckdb.DuckDBPyConnection) -> None:
        self.path = str(path)
        self._connection = connection
        self._relation = f"read_parquet({_sql_literal(self.path)})"
        self._lock = threading.Lock()

    def _cursor(self) -> duckdb.DuckDBPyConnection:
        # cursor() on a shared connection is not documented as thread-safe
        with self._lock:
            return self._connection.cursor()

    def count(self) -> int:
        import duckdb

        cursor = self._cursor()
        try:
            row = cursor.execute(f"SELECT COUNT(*) FROM {self._relation}").fetchone()
        except duckdb.Error as e:
            raise QueryFailureError(f"Counting rows of {self.path} failed: {e}") from e
        finally:
            cursor.close()
        if row is None:
            raise QueryFailureError(f"Counting rows of {self.path} returned no result")
        return int(row[0])

    def read_range(self, offset: int, limit: int) -> list[Record]:
        import duckdb

        if offset < 0 or limit < 1:
            raise QueryFailureError(f"Invalid read of {self.path}: offset={offset} limit={limit}")
        cursor = self._cursor()
        try:
            table = cursor.execute(f"SELECT * FROM {self._relation} LIMIT {int(limit)} OFFSET {int(offset)}").fetch_arrow_table()
        except duckdb.Error as e:
            raise QueryFailureError(f"Reading {self.path} failed: {e}") from e
        finally:
            cursor.close()
        rows: list[Record] = table.to_pylist()
        logger.debug("Read %d rows from %s at offset %d", len(rows), self.path, offset)
        return rows

    def close(self) -> None:
        self._connection.close()


class DuckDBRowSource:
    """Row source for local Parquet files queried through DuckDB.

    Config options:
        threads: DuckDB worker threads per connection
        memory_limit: DuckDB memory limit
    """

    name = "duckdb"
    plugin_version = "1.0.0"

    def __init__(self, config: dict[str, Any]) -> None:
        self._config = DuckDBSourceConfig.from_dict(config)

    def open(self, path: Path) -> DuckDBHandle:
        """Connect an in-memory database and check the file exists.

        Raises:
            SourceUnavailableError: If the file is missing or DuckDB cannot start
        """
        import duckdb

        if not path.is_file():
            raise SourceUnavailableError(str(path), "no such file")

        duckdb_config: dict[str, Any] = {}
        if self._config.threads is not None:
            duckdb_config["threads"] = self._config.threads
        if self._config.memory_limit is not None:
            duckdb_config["memory_limit"] = self._config.memory_limit
        try:
            connection = duckdb.connect(":memory:", config=duckdb_config)
        except duckdb.Error as e:
            raise SourceUnavailableError(str(path), str(e)) from e
        return DuckDBHandle(path, connection)
