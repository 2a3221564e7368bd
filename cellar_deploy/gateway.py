"""
Module wrapping the S3-compatible object store used for hosting.
"""
import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .models import BucketStatus, ListingPage, RemoteObjectRef, SyncConfig

logger = logging.getLogger(__name__)

PUBLIC_READ = "public-read"

# Connections kept open for concurrent delete fan-out and upload workers.
MIN_POOL_CONNECTIONS = 100

_STATUS_BY_CODE = {
    'NoSuchBucket': BucketStatus.NOT_FOUND,
    'InvalidAccessKeyId': BucketStatus.INVALID_ACCESS_KEY,
    'SignatureDoesNotMatch': BucketStatus.INVALID_SECRET,
}

_ALREADY_EXISTS_CODES = {'BucketAlreadyOwnedByYou', 'BucketAlreadyExists'}


def error_code(exception: Exception) -> Optional[str]:
    """Extract the S3 error code of a client error, if any."""
    if isinstance(exception, ClientError):
        return exception.response.get('Error', {}).get('Code')
    return None


def http_status(exception: Exception) -> Optional[int]:
    """Extract the HTTP status of a client error, if any."""
    if isinstance(exception, ClientError):
        return exception.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
    return None


class CellarGateway:
    """Stateless set of bucket operations over a boto3 client."""

    def __init__(self, s3_client, bucket_name: str):
        """Initialize the gateway.

        Args:
            s3_client: boto3 S3 client
            bucket_name: Bucket all object operations apply to
        """
        self.s3_client = s3_client
        self.bucket_name = bucket_name

    def check_bucket(self) -> BucketStatus:
        """Probe the bucket with a one-key listing.

        Returns:
            BucketStatus describing whether the bucket can be used
        """
        try:
            self.s3_client.list_objects_v2(Bucket=self.bucket_name, MaxKeys=1)
            return BucketStatus.ACCESSIBLE
        except ClientError as e:
            status = _STATUS_BY_CODE.get(error_code(e), BucketStatus.ACCESS_FAILED)
            logger.debug(f"Bucket check for {self.bucket_name} failed: {e}")
            return status
        except BotoCoreError as e:
            logger.debug(f"Bucket check for {self.bucket_name} failed: {e}")
            return BucketStatus.ACCESS_FAILED

    def bucket_accessible(self) -> bool:
        return self.check_bucket() is BucketStatus.ACCESSIBLE

    def create_bucket(self, name: Optional[str] = None) -> bool:
        """Create a bucket, treating an existing one as success.

        Args:
            name: Bucket to create, defaults to the gateway's bucket

        Returns:
            True if the bucket exists afterwards, False otherwise
        """
        name = name or self.bucket_name
        try:
            self.s3_client.create_bucket(Bucket=name)
            logger.info(f"Created bucket {name}")
            return True
        except ClientError as e:
            if error_code(e) in _ALREADY_EXISTS_CODES or http_status(e) == 409:
                logger.info(f"Bucket {name} already exists")
                return True
            logger.error(f"Error creating bucket {name}: {e}")
            return False
        except BotoCoreError as e:
            logger.error(f"Error creating bucket {name}: {e}")
            return False

    def list_objects(self, max_keys: int) -> ListingPage:
        """List up to ``max_keys`` objects from the start of the bucket.

        No continuation token is sent: after deletions the next call
        returns whatever is left.

        Args:
            max_keys: Maximum number of keys to return

        Returns:
            ListingPage with the keys found
        """
        response = self.s3_client.list_objects_v2(Bucket=self.bucket_name, MaxKeys=max_keys)
        objects = [
            RemoteObjectRef(key=item['Key'])
            for item in response.get('Contents', [])
            if item.get('Key')
        ]
        if 'IsTruncated' in response:
            is_truncated = bool(response['IsTruncated'])
        else:
            is_truncated = len(objects) >= max_keys
        return ListingPage(objects=objects, is_truncated=is_truncated)

    def delete_object(self, key: str) -> bool:
        """Delete one object.

        Args:
            key: Object key

        Returns:
            True if the store confirmed the deletion, False otherwise
        """
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting {key}: {e}")
            return False

    def put_object(self, key: str, body: bytes, content_type: str) -> None:
        """Write one publicly readable object, replacing any existing one.

        Args:
            key: Object key
            body: Object content
            content_type: MIME type served with the object
        """
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=body,
            ContentType=content_type,
            ACL=PUBLIC_READ
        )


def create_gateway_client(config: SyncConfig) -> CellarGateway:
    """Create a gateway for the bucket named in a sync configuration.

    Args:
        config: Sync configuration holding credentials and endpoint

    Returns:
        Configured CellarGateway
    """
    s3_client = boto3.client(
        's3',
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
        region_name=config.region,
        config=Config(max_pool_connections=max(config.worker_count, MIN_POOL_CONNECTIONS))
    )
    logger.debug(f"Created S3 client for endpoint {config.endpoint_url or 'default'}")
    return CellarGateway(s3_client, config.bucket_name)
