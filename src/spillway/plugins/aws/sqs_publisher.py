# src/spillway/plugins/aws/sqs_publisher.py
"""SQS publisher: one SendMessageBatch call per batch.

Each record becomes one message whose body is the record's compact JSON.
The batch entry Id is the record's absolute row number in its source file,
which is unique within a call and identifies rejected rows in logs.

SQS answers a batch call in two ways:
- The call fails (network, auth, throttling after SDK retries, oversize
  request): raised as TransportFailureError, no per-record outcome exists.
- The call succeeds but lists some entries under ``Failed``: returned as a
  PublishOutcome with a non-empty ``failed``. The engine turns that into
  PartialPublishFailureError.

Delivery is at-least-once. For FIFO queues every message carries a
MessageDeduplicationId derived from (source, row), so re-running a file
inside the deduplication window does not enqueue duplicates. The source is
the file's stable identity (e.g. s3://bucket/key), never a local copy's path.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError
from pydantic import Field, field_validator

from spillway.contracts import (
    Batch,
    EncodingFailureError,
    PublishOutcome,
    RecordFailure,
    TransportFailureError,
)
from spillway.core.canonical import encode_record, stable_hash
from spillway.core.config import SQS_MAX_BATCH_SIZE
from spillway.plugins.aws.session import AwsClientFactory
from spillway.plugins.config_base import PluginConfig

if TYPE_CHECKING:
    from spillway.engine.cancellation import CancellationToken

logger = logging.getLogger(__name__)

# SQS limit for MessageGroupId and MessageDeduplicationId
SQS_MAX_ID_LENGTH = 128


def _group_id(source: str) -> str:
    """Default MessageGroupId: the source identity, hashed when SQS would reject its length."""
    if not source:
        return "spillway"
    if len(source) > SQS_MAX_ID_LENGTH:
        return stable_hash(source)
    return source


class SqsPublisherConfig(PluginConfig):
    """Configuration for the sqs publisher.

    region, profile and endpoint_url default to the top-level ``aws``
    settings section when the publisher is built by the plugin manager.
    """

    queue_url: str = Field(description="Target queue URL")
    fifo_group_id: str | None = Field(
        default=None,
        max_length=SQS_MAX_ID_LENGTH,
        description="MessageGroupId for FIFO queues (default: the source identity)",
    )
    region: str | None = None
    profile: str | None = None
    endpoint_url: str | None = None

    @field_validator("queue_url")
    @classmethod
    def validate_queue_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("queue_url must not be empty")
        return v

    @property
    def is_fifo(self) -> bool:
        return self.queue_url.endswith(".fifo")


class SqsPublisher:
    """Publish batches to an SQS queue with SendMessageBatch.

    Args:
        config: Plugin options (see SqsPublisherConfig)
        client: Pre-built boto3 SQS client; built from config when omitted
    """

    name = "sqs"
    plugin_version = "1.0.0"
    requires_aws = True
    max_batch_size = SQS_MAX_BATCH_SIZE

    def __init__(self, config: dict[str, Any], *, client: Any | None = None) -> None:
        self._config = SqsPublisherConfig.from_dict(config)
        if client is None:
            factory = AwsClientFactory(region=self._config.region, profile=self._config.profile)
            client = factory.client("sqs", endpoint_url=self._config.endpoint_url)
        self._client = client

    @property
    def queue_url(self) -> str:
        return self._config.queue_url

    def _entry(self, batch: Batch, record_id: str, body: str) -> dict[str, str]:
        entry = {"Id": record_id, "MessageBody": body}
        if self._config.is_fifo:
            entry["MessageGroupId"] = self._config.fifo_group_id or _group_id(batch.source)
            entry["MessageDeduplicationId"] = stable_hash(batch.source, record_id)
        return entry

    def publish(self, batch: Batch, token: CancellationToken) -> PublishOutcome:
        """Send one batch.

        Raises:
            ValueError: If the batch exceeds the SQS per-call limit
            EncodingFailureError: If a record cannot be serialized
            TransportFailureError: If the SendMessageBatch call fails
            OperationCancelledError: If the token fired before the call
        """
        if len(batch) > self.max_batch_size:
            raise ValueError(f"Batch {batch.index} holds {len(batch)} records; SQS accepts at most {self.max_batch_size}")

        entries = []
        for record_id, record in batch.entries():
            try:
                body = encode_record(record)
            except (TypeError, ValueError) as e:
                raise EncodingFailureError(
                    f"Record {record_id} in batch {batch.index} cannot be encoded: {e}",
                    batch_index=batch.index,
                    record_id=record_id,
                ) from e
            entries.append(self._entry(batch, record_id, body))

        token.check()
        try:
            response = self._client.send_message_batch(QueueUrl=self._config.queue_url, Entries=entries)
        except (ClientError, BotoCoreError) as e:
            raise TransportFailureError(
                f"SendMessageBatch failed for batch {batch.index} of {batch.source or 'unknown source'}: {e}",
                batch_index=batch.index,
                cause=e,
            ) from e

        succeeded = frozenset(entry["Id"] for entry in response.get("Successful", []))
        failed = tuple(
            RecordFailure(
                id=entry["Id"],
                reason=entry.get("Message", ""),
                code=entry.get("Code"),
                sender_fault=entry.get("SenderFault", False),
            )
            for entry in response.get("Failed", [])
        )
        if failed:
            logger.warning(
                "SQS rejected %d of %d messages in batch %d of %s",
                len(failed),
                len(entries),
                batch.index,
                batch.source,
            )
        return PublishOutcome(succeeded=succeeded, failed=failed)

    def close(self) -> None:
        # botocore >= 1.29 exposes close() on clients
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
