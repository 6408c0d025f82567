# src/spillway/contracts/requests.py
"""Inbound request/response shapes for one invocation.

The pipeline echoes, never generates, these: a request names the bucket and
object keys to publish, and a fully successful response returns the same keys.
"""

from pydantic import BaseModel, Field, field_validator


class PublishRequest(BaseModel):
    """Files to publish, addressed as keys within one bucket."""

    model_config = {"extra": "forbid", "frozen": True}

    bucket: str = Field(..., description="Bucket holding the source files")
    paths: list[str] = Field(default_factory=list, description="Object keys to publish, in order")

    @field_validator("bucket")
    @classmethod
    def validate_bucket_not_empty(cls, v: str) -> str:
        """Validate that bucket is not empty or whitespace-only."""
        if not v or not v.strip():
            raise ValueError("bucket cannot be empty")
        return v

    @field_validator("paths")
    @classmethod
    def validate_paths_not_blank(cls, v: list[str]) -> list[str]:
        """Reject blank keys; they would resolve to the bucket root."""
        for path in v:
            if not path or not path.strip():
                raise ValueError("paths cannot contain empty keys")
        return v


class PublishResponse(BaseModel):
    """Returned only when every path was fully published."""

    model_config = {"frozen": True}

    paths: list[str] = Field(default_factory=list)
