"""Built-in local publisher plugins (the SQS publisher lives in plugins.aws)."""

from spillway.plugins.publishers.jsonl_publisher import JsonlPublisher
from spillway.plugins.publishers.null_publisher import NullPublisher

__all__ = ["JsonlPublisher", "NullPublisher"]
