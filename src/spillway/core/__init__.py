"""Core infrastructure: configuration, logging, record encoding."""

from spillway.core.canonical import encode_record, stable_hash
from spillway.core.config import (
    SQS_MAX_BATCH_SIZE,
    SpillwaySettings,
    load_settings,
    load_settings_from_env,
    resolve_config,
)
from spillway.core.logging import configure_logging

__all__ = [
    "SQS_MAX_BATCH_SIZE",
    "SpillwaySettings",
    "configure_logging",
    "encode_record",
    "load_settings",
    "load_settings_from_env",
    "resolve_config",
    "stable_hash",
]
