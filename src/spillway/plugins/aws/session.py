# src/spillway/plugins/aws/session.py
"""boto3 client construction for Spillway AWS plugins.

Credentials are never configured here: they come from the standard SDK
chain (environment, shared config, instance or Lambda role). Only the
profile, region and endpoint overrides are settable, so local stacks such
as localstack work without code changes.

boto3 sessions are not thread-safe but the clients they create are. Build
clients on the main thread and share them with workers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config as BotoConfig

if TYPE_CHECKING:
    from spillway.core.config import AwsSettings

# botocore's default pool (10) is smaller than a busy pipeline's thread count
DEFAULT_MAX_POOL_CONNECTIONS = 50


class AwsClientFactory:
    """Create boto3 clients from one session.

    Example:
        factory = AwsClientFactory.from_settings(settings.aws)
        s3 = factory.client("s3", endpoint_url=settings.aws.s3_endpoint_override)
    """

    def __init__(self, *, region: str | None = None, profile: str | None = None) -> None:
        self._session = boto3.session.Session(profile_name=profile, region_name=region)

    @classmethod
    def from_settings(cls, settings: AwsSettings) -> AwsClientFactory:
        return cls(region=settings.region, profile=settings.profile)

    def client(
        self,
        service_name: str,
        *,
        endpoint_url: str | None = None,
        max_pool_connections: int = DEFAULT_MAX_POOL_CONNECTIONS,
    ) -> Any:
        """Create a client with standard retry mode and a sized connection pool.

        Args:
            service_name: boto3 service name ("s3", "sqs")
            endpoint_url: Override for local or non-AWS endpoints
            max_pool_connections: HTTP connections shared by all threads using the client
        """
        config = BotoConfig(
            retries={"mode": "standard"},
            max_pool_connections=max_pool_connections,
        )
        return self._session.client(service_name, endpoint_url=endpoint_url, config=config)
