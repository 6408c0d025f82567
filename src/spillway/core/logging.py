# src/spillway/core/logging.py
"""Logging setup shared by the CLI and the Lambda entry point.

Engine modules log with ``structlog.get_logger(__name__)``; plugins log with
``logging.getLogger(__name__)`` so they stay usable without structlog
configured. Both end up on one stdlib handler whose ProcessorFormatter
renders every line the same way: JSON lines under Lambda and
``--json-logs``, aligned key=value text otherwise.

Anything bound with ``structlog.contextvars`` (the Lambda request id, for
instance) is merged into plugin lines as well as engine lines.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

# boto3 and urllib3 log every HTTP request and credential lookup at DEBUG
_AWS_SDK_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def _parse_level(level: str) -> int:
    """Map a level name to its number, rejecting names stdlib does not know."""
    levels = logging.getLevelNamesMapping()
    try:
        return levels[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r}; expected one of DEBUG, INFO, WARNING, ERROR") from None


def _line_processors(json_output: bool, out: TextIO) -> list[Any]:
    if json_output:
        return [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=out.isatty()),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging through one formatted handler.

    Safe to call more than once; each call replaces the root handler.

    Args:
        json_output: One JSON object per line instead of console text
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
        stream: Destination (default: stdout)

    Raises:
        ValueError: Unknown level name
    """
    root_level = _parse_level(level)
    out = stream if stream is not None else sys.stdout

    # Applied to structlog events and to plain stdlib records alike
    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration must reach loggers created before it
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(ProcessorFormatter(processors=_line_processors(json_output, out), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(root_level)

    for name in _AWS_SDK_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))
