"""AWS plugins: SQS publisher, S3 fetcher and shared client construction.

Requires boto3. Credentials come from the standard AWS SDK chain.
"""

from spillway.plugins.aws.s3_fetcher import S3Fetcher
from spillway.plugins.aws.session import AwsClientFactory
from spillway.plugins.aws.sqs_publisher import SqsPublisher, SqsPublisherConfig

__all__ = ["AwsClientFactory", "S3Fetcher", "SqsPublisher", "SqsPublisherConfig"]
