# src/spillway/engine/publishing.py
"""Publish one batch as a coordinator work unit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from spillway.contracts.data import Batch
from spillway.contracts.errors import PartialPublishFailureError

if TYPE_CHECKING:
    from spillway.engine.cancellation import CancellationToken
    from spillway.plugins.protocols import PublisherProtocol


@dataclass(frozen=True)
class BatchPublishUnit:
    """Send one batch and turn rejected records into a failure.

    A publisher reports rejected records in its outcome instead of raising;
    this unit is where a non-empty ``failed`` becomes
    PartialPublishFailureError.
    """

    batch: Batch
    publisher: PublisherProtocol

    @property
    def name(self) -> str:
        return f"batch-{self.batch.index}"

    def run(self, token: CancellationToken) -> int:
        """Publish the batch.

        Returns:
            Number of records published

        Raises:
            PartialPublishFailureError: The call succeeded but rejected records
            TransportFailureError: The call failed (raised by the publisher)
            EncodingFailureError: A record could not be encoded
            OperationCancelledError: The token fired before the call
        """
        token.check()
        outcome = self.publisher.publish(self.batch, token)
        if not outcome.ok:
            raise PartialPublishFailureError(self.batch.index, outcome.succeeded, outcome.failed)
        return len(self.batch)
