# src/spillway/core/config.py
"""
Configuration schema and loading for Spillway.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

# Hard per-call item limit of the SQS SendMessageBatch API
SQS_MAX_BATCH_SIZE = 10

_ENV_PREFIX = "SPILLWAY"


class SourceSettings(BaseModel):
    """Row source plugin configuration."""

    model_config = {"frozen": True}

    plugin: str = Field(default="parquet", description="Plugin name (parquet, duckdb)")
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Plugin-specific configuration options",
    )


class PublisherSettings(BaseModel):
    """Publisher plugin configuration."""

    model_config = {"frozen": True}

    plugin: str = Field(default="sqs", description="Plugin name (sqs, jsonl, null)")
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Plugin-specific configuration options (e.g. queue_url)",
    )


class PartitioningSettings(BaseModel):
    """How a file's rows are split into work.

    rows_per_worker sizes the ranges handed to range workers. rows_per_read
    bounds a single source read inside a range (None: read the whole range
    at once). max_batch_size is the number of records per publish call.
    """

    model_config = {"frozen": True}

    rows_per_worker: int = Field(default=100_000, ge=1, description="Rows per range worker")
    rows_per_read: int | None = Field(default=None, ge=1, description="Rows per source read within a range")
    max_batch_size: int = Field(
        default=SQS_MAX_BATCH_SIZE,
        ge=1,
        description="Records per publish call (bounded by the publisher's limit)",
    )


class ConcurrencySettings(BaseModel):
    """Parallel processing configuration.

    max_workers caps concurrent range workers; 0 runs one thread per range.
    publish_concurrency caps concurrent publish calls inside each range.
    max_errors > 1 keeps later errors (up to the cap) alongside the first.
    """

    model_config = {"frozen": True}

    max_workers: int = Field(default=8, ge=0, description="Maximum concurrent range workers (0 = one per range)")
    publish_concurrency: int = Field(default=4, ge=1, description="Maximum concurrent publish calls per range")
    max_errors: int = Field(default=1, ge=1, description="Errors retained per file (1 = first error wins)")

    def range_concurrency(self, n_ranges: int) -> int:
        """Resolve effective range concurrency for a file with n_ranges ranges."""
        if n_ranges <= 0:
            return 1
        if self.max_workers == 0:
            return n_ranges
        return min(self.max_workers, n_ranges)


class FetchRetrySettings(BaseModel):
    """Retry behavior for remote object retrieval."""

    model_config = {"frozen": True}

    max_attempts: int = Field(default=3, gt=0, description="Maximum download attempts")
    initial_delay_seconds: float = Field(default=1.0, gt=0, description="Initial backoff delay")
    max_delay_seconds: float = Field(default=30.0, gt=0, description="Maximum backoff delay")


class AwsSettings(BaseModel):
    """AWS client configuration shared by the S3 fetcher and SQS publisher."""

    model_config = {"frozen": True}

    region: str | None = Field(default=None, description="AWS region (default: SDK resolution)")
    profile: str | None = Field(default=None, description="Named profile for local use")
    s3_endpoint_override: str | None = Field(
        default=None,
        description="Custom S3 endpoint (e.g. a localstack URL)",
    )
    sqs_endpoint_override: str | None = Field(default=None, description="Custom SQS endpoint")

    @field_validator("s3_endpoint_override", "sqs_endpoint_override")
    @classmethod
    def validate_endpoint(cls, v: str | None) -> str | None:
        """Treat empty strings from the environment as unset."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"endpoint override must be an http(s) URL, got {v!r}")
        return v


class SpillwaySettings(BaseModel):
    """Top-level Spillway configuration.

    This is the single source of truth for a run's configuration.
    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    env: str = Field(default="production", description="Deployment environment name")
    source: SourceSettings = Field(default_factory=SourceSettings)
    publisher: PublisherSettings = Field(default_factory=PublisherSettings)
    partitioning: PartitioningSettings = Field(default_factory=PartitioningSettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    fetch_retry: FetchRetrySettings = Field(default_factory=FetchRetrySettings)
    aws: AwsSettings = Field(default_factory=AwsSettings)
    deadline_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Overall per-file deadline (None: no deadline)",
    )

    @model_validator(mode="after")
    def validate_sqs_batch_limit(self) -> "SpillwaySettings":
        """SQS rejects batches over its per-call limit; catch it at load time."""
        if self.publisher.plugin == "sqs" and self.partitioning.max_batch_size > SQS_MAX_BATCH_SIZE:
            raise ValueError(f"partitioning.max_batch_size must be <= {SQS_MAX_BATCH_SIZE} for the sqs publisher")
        return self

    @property
    def is_local(self) -> bool:
        return self.env == "local"


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original (validation will flag it)
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(config: dict[str, Any]) -> dict[str, Any]:
    """Lowercase settings keys at every level (values are untouched).

    Dynaconf upper-cases keys that come from environment variables, so
    SPILLWAY_PUBLISHER__OPTIONS__QUEUE_URL arrives as OPTIONS.QUEUE_URL.
    All schema fields and plugin options are snake_case.
    """
    result: dict[str, Any] = {}
    for key, value in config.items():
        lowered = str(key).lower()
        result[lowered] = _lower_keys(value) if isinstance(value, dict) else value
    return result


def _load_raw(settings_files: list[str]) -> dict[str, Any]:
    from dynaconf import Dynaconf

    dynaconf_settings = Dynaconf(
        envvar_prefix=_ENV_PREFIX,
        settings_files=settings_files,
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # The CLI loads .env itself
        merge_enabled=True,  # Deep merge nested dicts
    )

    # Filter out internal Dynaconf settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    return _expand_env_vars(_lower_keys(raw_config))


def load_settings(config_path: Path) -> SpillwaySettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (SPILLWAY_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: SPILLWAY_PARTITIONING__ROWS_PER_WORKER for
    nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated SpillwaySettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return SpillwaySettings(**_load_raw([str(config_path)]))


def load_settings_from_env() -> SpillwaySettings:
    """Load settings from SPILLWAY_* environment variables only.

    Used by the serverless entry point, which has no settings file.
    """
    return SpillwaySettings(**_load_raw([]))


# Secret-like option names redacted from resolved config
_SECRET_FIELD_NAMES = frozenset({"password", "secret", "token", "credential"})
_SECRET_FIELD_SUFFIXES = ("_secret", "_key", "_token", "_password", "_credential")

REDACTED = "***redacted***"


def _is_secret_field(field_name: str) -> bool:
    return field_name in _SECRET_FIELD_NAMES or field_name.endswith(_SECRET_FIELD_SUFFIXES)


def _redact_secrets(value: Any, key: str = "") -> Any:
    if isinstance(value, dict):
        return {k: _redact_secrets(v, k) for k, v in value.items()}
    if isinstance(value, list):
        return [_redact_secrets(item) for item in value]
    if isinstance(value, str) and _is_secret_field(key):
        return REDACTED
    return value


def resolve_config(settings: SpillwaySettings) -> dict[str, Any]:
    """Convert validated settings to a dict for logging at startup.

    Includes all settings (explicit + defaults) with secret-like plugin
    options redacted.

    Args:
        settings: Validated SpillwaySettings instance

    Returns:
        JSON-serializable dict
    """
    resolved: dict[str, Any] = _redact_secrets(settings.model_dump(mode="json"))
    return resolved
