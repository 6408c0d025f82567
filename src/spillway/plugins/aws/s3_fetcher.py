# src/spillway/plugins/aws/s3_fetcher.py
"""Download source objects from S3 into a local working directory.

Row sources only read local files; the request handler fetches each key
first. Transient transport errors are retried with exponential backoff and
jitter (tenacity). Missing objects and access errors are not retried: they
become SourceUnavailableError, which fails the file.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from spillway.contracts import SourceUnavailableError
from spillway.core.config import FetchRetrySettings

if TYPE_CHECKING:
    from spillway.engine.cancellation import CancellationToken

logger = logging.getLogger(__name__)

# S3 error codes worth another attempt
_TRANSIENT_CODES = frozenset(
    {
        "500",
        "502",
        "503",
        "504",
        "InternalError",
        "RequestTimeout",
        "ServiceUnavailable",
        "SlowDown",
        "Throttling",
    }
)


def is_transient(error: BaseException) -> bool:
    """True for S3 failures that may succeed on retry."""
    if isinstance(error, EndpointConnectionError | ConnectionClosedError | ReadTimeoutError):
        return True
    if isinstance(error, ClientError):
        return str(error.response.get("Error", {}).get("Code", "")) in _TRANSIENT_CODES
    return False


def local_path_for(dest_dir: Path, key: str) -> Path:
    """Map an object key to a path under dest_dir, keeping its prefixes.

    Raises:
        ValueError: If the key is empty, absolute, or escapes dest_dir
    """
    parts = PurePosixPath(key).parts
    if not parts or key.startswith("/") or ".." in parts:
        raise ValueError(f"Refusing to map object key {key!r} to a local path")
    return dest_dir.joinpath(*parts)


class S3Fetcher:
    """Fetch objects with a shared boto3 S3 client.

    Args:
        client: boto3 S3 client
        retry: Attempt and backoff limits for transient errors
    """

    def __init__(self, client: Any, *, retry: FetchRetrySettings | None = None) -> None:
        self._client = client
        self._retry = retry if retry is not None else FetchRetrySettings()

    def fetch(
        self,
        bucket: str,
        key: str,
        dest_dir: Path,
        token: CancellationToken | None = None,
    ) -> Path:
        """Download s3://bucket/key under dest_dir.

        Returns:
            Local path of the downloaded file

        Raises:
            SourceUnavailableError: Object missing, access denied, or
                transient errors persisted past the last attempt
            OperationCancelledError: The token fired between attempts
        """
        uri = f"s3://{bucket}/{key}"
        try:
            dest = local_path_for(dest_dir, key)
        except ValueError as e:
            raise SourceUnavailableError(uri, str(e)) from e
        dest.parent.mkdir(parents=True, exist_ok=True)

        def _log_retry(retry_state: Any) -> None:
            logger.warning(
                "Retrying download of %s (attempt %d failed: %s)",
                uri,
                retry_state.attempt_number,
                retry_state.outcome.exception() if retry_state.outcome else None,
            )

        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self._retry.max_attempts),
                wait=wait_exponential_jitter(
                    initial=self._retry.initial_delay_seconds,
                    max=self._retry.max_delay_seconds,
                ),
                retry=retry_if_exception(is_transient),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    if token is not None:
                        token.check()
                    self._client.download_file(bucket, key, str(dest))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "unknown")
            raise SourceUnavailableError(uri, f"{code}: {e}") from e
        except BotoCoreError as e:
            raise SourceUnavailableError(uri, str(e)) from e

        logger.debug("Downloaded %s to %s", uri, dest)
        return dest
