# src/spillway/entrypoints/aws_lambda.py
"""AWS Lambda entry points.

Configure the publishing function's handler as
``spillway.entrypoints.aws_lambda.handler``. Settings come from SPILLWAY_*
environment variables, e.g.:

    SPILLWAY_PUBLISHER__OPTIONS__QUEUE_URL=https://sqs.../records
    SPILLWAY_PARTITIONING__ROWS_PER_WORKER=50000
    SPILLWAY_AWS__S3_ENDPOINT_OVERRIDE=http://localhost:4566

The event is a PublishRequest: ``{"bucket": "...", "paths": ["a.parquet"]}``.
The handler (plugins, boto3 clients) is built on the first invocation and
reused by warm invocations of the same execution environment.

``consume`` is a minimal consumer for the target queue's event source
mapping. It acknowledges each SQS batch and logs its size, which is enough
to watch records arrive end to end.
"""

from __future__ import annotations

import functools
import os
from typing import Any

import structlog

from spillway.contracts.requests import PublishRequest
from spillway.core.config import load_settings_from_env, resolve_config
from spillway.core.logging import configure_logging
from spillway.engine.cancellation import CancellationToken
from spillway.engine.handler import RecordPublisherHandler

logger = structlog.get_logger(__name__)

# Stop launching work this long before Lambda kills the invocation
DEADLINE_BUFFER_SECONDS = 10.0

_handler: RecordPublisherHandler | None = None


@functools.cache
def _setup_logging() -> None:
    configure_logging(json_output=True, level=os.environ.get("SPILLWAY_LOG_LEVEL", "INFO"))


def _get_handler() -> RecordPublisherHandler:
    global _handler
    if _handler is None:
        _setup_logging()
        settings = load_settings_from_env()
        logger.info("configuration loaded", config=resolve_config(settings))
        _handler = RecordPublisherHandler.from_settings(settings)
    return _handler


def reset_handler() -> None:
    """Drop the cached handler (tests, config reloads)."""
    global _handler
    if _handler is not None:
        _handler.close()
    _handler = None


def deadline_from_context(context: Any, buffer_seconds: float = DEADLINE_BUFFER_SECONDS) -> float | None:
    """Seconds of work left for this invocation, or None outside Lambda."""
    remaining_ms = getattr(context, "get_remaining_time_in_millis", None)
    if remaining_ms is None:
        return None
    # Never return <= 0: a token with no time left is still a valid deadline
    return max(remaining_ms() / 1000.0 - buffer_seconds, 0.001)


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda handler.

    Raises:
        pydantic.ValidationError: Malformed event
        FileProcessingError: A file failed; Lambda reports the invocation as failed
    """
    request = PublishRequest.model_validate(event)
    token = CancellationToken(deadline_seconds=deadline_from_context(context))
    # Context vars reach plugin lines logged on this thread, not only this logger's
    with structlog.contextvars.bound_contextvars(request_id=getattr(context, "aws_request_id", None)):
        log = logger.bind(bucket=request.bucket, files=len(request.paths))
        log.info("request received")
        response = _get_handler().handle(request, token)
        log.info("request completed")
    return response.model_dump()


def consume(event: dict[str, Any], context: Any) -> None:
    """SQS event source handler: log the batch size and acknowledge the batch."""
    _setup_logging()
    records = event.get("Records") or []
    logger.info("received sqs event", count=len(records), request_id=getattr(context, "aws_request_id", None))
