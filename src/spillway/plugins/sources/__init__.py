"""Built-in row source plugins."""

from spillway.plugins.sources.duckdb_source import DuckDBRowSource
from spillway.plugins.sources.parquet_source import ParquetRowSource

__all__ = ["DuckDBRowSource", "ParquetRowSource"]
