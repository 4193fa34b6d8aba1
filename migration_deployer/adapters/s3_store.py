"""S3 adapter implementing ObjectStoreProtocol.

Wraps a boto3 S3 client and translates botocore errors into the
package's StorageError hierarchy.
"""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from migration_deployer.core.errors import ObjectExistsError, ObjectNotFoundError, StorageError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
_PRECONDITION_CODES = frozenset({"412", "PreconditionFailed", "ConditionalRequestConflict"})


def create_s3_client(endpoint_url: str | None = None, region: str | None = None) -> BaseClient:
    """Create an S3 client from the default credential chain.

    Args:
        endpoint_url: Custom endpoint for S3-compatible services. Enables
            path-style addressing.
        region: Optional region override.

    Returns:
        Configured boto3 S3 client.
    """
    kwargs: dict[str, Any] = {}
    if region:
        kwargs["region_name"] = region
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
        kwargs["config"] = Config(s3={"addressing_style": "path"})
        logger.info("Using custom S3 endpoint %s", endpoint_url)
    return boto3.client("s3", **kwargs)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3ObjectStore:
    """Object store backed by S3 (or an S3-compatible service)."""

    def __init__(self, client: BaseClient) -> None:
        """Initialize the store.

        Args:
            client: boto3 S3 client.
        """
        self._client = client

    def list_prefixes(self, bucket: str, prefix: str) -> list[str]:
        prefixes: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix, Delimiter="/"):
                for entry in page.get("CommonPrefixes", []):
                    value = entry.get("Prefix")
                    if value:
                        prefixes.append(value)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list s3://{bucket}/{prefix}: {e}") from e
        return prefixes

    def list_keys(self, bucket: str, prefix: str) -> list[str]:
        keys: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    key = obj.get("Key")
                    if key:
                        keys.append(key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list s3://{bucket}/{prefix}: {e}") from e
        return keys

    def head(self, bucket: str, key: str) -> bool:
        try:
            self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise StorageError(f"Failed to check s3://{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to check s3://{bucket}/{key}: {e}") from e
        return True

    def get(self, bucket: str, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            body = response["Body"]
            try:
                return body.read()
            finally:
                body.close()
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(bucket, key) from e
            raise StorageError(f"Failed to get s3://{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to get s3://{bucket}/{key}: {e}") from e

    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str | None = None,
        if_none_match: bool = False,
    ) -> None:
        params: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": body}
        if content_type:
            params["ContentType"] = content_type
        if if_none_match:
            params["IfNoneMatch"] = "*"
        try:
            self._client.put_object(**params)
        except ClientError as e:
            if if_none_match and _error_code(e) in _PRECONDITION_CODES:
                raise ObjectExistsError(bucket, key) from e
            raise StorageError(f"Failed to put s3://{bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to put s3://{bucket}/{key}: {e}") from e
        logger.debug("Wrote s3://%s/%s (%d bytes)", bucket, key, len(body))
