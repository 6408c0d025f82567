"""
Spillway: parallel partition-and-publish for large columnar files.

Splits a Parquet file's rows into bounded ranges, reads them concurrently,
re-chunks the rows into queue-sized batches and publishes every row as a
discrete message, failing fast on the first error.
"""

__version__ = "0.1.0"
