# src/spillway/core/canonical.py
"""
JSON serialization of records into message bodies.

Rows arrive from the source as Python values decoded by the query engine
(datetimes, Decimals, bytes, nested dicts and lists). They are normalized
to JSON-safe primitives here and serialized compactly.

NaN and Infinity are REJECTED, not silently converted: a message body that
downstream JSON parsers cannot read is an encoding failure, not data.
"""

from __future__ import annotations

import base64
import hashlib
import json
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from spillway.contracts.data import Record


def _json_default(obj: Any) -> Any:
    """Convert values the json module cannot serialize natively.

    Raises:
        TypeError: For values with no JSON representation
        ValueError: For non-finite Decimals
    """
    if isinstance(obj, datetime | date | time):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        if not obj.is_finite():
            raise ValueError(f"Cannot encode non-finite Decimal: {obj}")
        # Preserve precision; floats would round
        return str(obj)
    if isinstance(obj, bytes | bytearray | memoryview):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, set | frozenset | tuple):
        return list(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def encode_record(record: Record) -> str:
    """Serialize one record into a compact JSON message body.

    Args:
        record: Row mapping as produced by a row source

    Returns:
        JSON string

    Raises:
        TypeError: If a value has no JSON representation
        ValueError: If a value is NaN or Infinity
    """
    return json.dumps(
        dict(record),
        default=_json_default,
        allow_nan=False,
        ensure_ascii=False,
        separators=(",", ":"),
    )


def stable_hash(*parts: str) -> str:
    """SHA-256 hex digest of the parts joined with ':'."""
    return hashlib.sha256(":".join(parts).encode("utf-8")).hexdigest()
