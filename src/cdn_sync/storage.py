"""S3 storage client used by the sync engine."""

from typing import Any, Dict, Iterator, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from cdn_sync.config import Config
from cdn_sync.exceptions import StorageConnectionError, StorageError

# delete_objects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000


class S3Storage:
    """Thin wrapper around the boto3 S3 client that raises cdn-sync errors."""

    def __init__(self, config: Config):
        self.config = config

        # The client is created lazily so config overrides are picked up
        self._s3_client = None

    @property
    def s3_client(self):
        """Get S3 client, creating it on first use."""
        if self._s3_client is None:
            self.connect()
        return self._s3_client

    def connect(self):
        """
        Create the S3 client.

        Raises:
            StorageConnectionError: If the session or client cannot be created
        """
        client_kwargs = self.config.get_s3_client_kwargs()
        if self.config.s3.use_path_style_endpoint:
            client_kwargs["config"] = BotoConfig(s3={"addressing_style": "path"})

        try:
            session = boto3.Session(profile_name=self.config.aws.profile)
            self._s3_client = session.client("s3", **client_kwargs)
        except (BotoCoreError, ClientError, ValueError) as e:
            raise StorageConnectionError(f"Connection error: {e}") from e

        return self._s3_client

    def reset(self) -> None:
        """Drop the client so the next call reconnects."""
        self._s3_client = None

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[Dict[str, Any]]:
        """Yield every object under ``prefix``, following pagination."""
        paginator = self.s3_client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    yield obj
        except (BotoCoreError, ClientError) as e:
            raise _storage_error("list", bucket, None, e) from e

    def put_object(
        self,
        bucket: str,
        key: str,
        body,
        content_type: str,
        content_encoding: str,
        acl: Optional[str] = None,
        cache_control: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        expires=None,
    ) -> Dict[str, Any]:
        """Upload a single object."""
        params: Dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
            "ContentEncoding": content_encoding,
        }
        # boto3 rejects None for optional parameters
        if acl:
            params["ACL"] = acl
        if cache_control:
            params["CacheControl"] = cache_control
        if metadata:
            params["Metadata"] = dict(metadata)
        if expires:
            params["Expires"] = expires

        try:
            return self.s3_client.put_object(**params)
        except (BotoCoreError, ClientError) as e:
            raise _storage_error("upload", bucket, key, e) from e

    def empty_bucket(self, bucket: str) -> int:
        """
        Delete every object in the bucket.

        Returns:
            Number of deleted objects
        """
        keys = [obj["Key"] for obj in self.list_objects(bucket)]
        deleted = 0

        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                response = self.s3_client.delete_objects(
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
                )
            except (BotoCoreError, ClientError) as e:
                raise _storage_error("delete", bucket, None, e) from e

            errors: List[Dict[str, Any]] = response.get("Errors", [])
            if errors:
                first = errors[0]
                raise StorageError(
                    f"Deletion error: {first.get('Key')}: {first.get('Message', first.get('Code'))}",
                    operation="delete",
                    key=first.get("Key"),
                    code=first.get("Code"),
                )
            deleted += len(batch)

        return deleted


def _storage_error(operation: str, bucket: str, key: Optional[str], error: Exception) -> StorageError:
    code = None
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "Unknown")

    target = f"s3://{bucket}/{key}" if key else f"s3://{bucket}"
    return StorageError(
        f"Failed to {operation} {target}: {error}",
        operation=operation,
        key=key,
        code=code,
    )
