"""Test-data helpers shipped with the package (used by the CLI and tests)."""

from spillway.testing.data_generator import RECORD_SCHEMA, generate_records, write_parquet

__all__ = ["RECORD_SCHEMA", "generate_records", "write_parquet"]
