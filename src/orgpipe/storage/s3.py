"""AWS S3 object store."""

import asyncio
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from orgpipe.errors import PersistenceFailure
from orgpipe.storage.base import ObjectStore

logger = logging.getLogger(__name__)


class S3ObjectStore(ObjectStore):
    """Object store writing to one S3 bucket.

    boto3 calls are blocking, so each put runs in a worker thread.

    Args:
        bucket_name: Target bucket
        client: boto3 S3 client (default: a new client for ``region``)
        region: Region used when no client is given
    """

    def __init__(
        self,
        bucket_name: str,
        client: Any | None = None,
        region: str | None = None,
    ) -> None:
        if not bucket_name:
            raise ValueError("bucket_name is required for the S3 object store")
        self.bucket_name = bucket_name
        self.client = client or boto3.client("s3", region_name=region)

    @property
    def location(self) -> str:
        return f"s3://{self.bucket_name}"

    async def put(self, key: str, body: str, content_type: str) -> str:
        def _put() -> None:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=body.encode("utf-8"),
                ContentType=content_type,
            )

        try:
            await asyncio.to_thread(_put)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            error_message = e.response.get("Error", {}).get("Message", str(e))
            raise PersistenceFailure(
                f"Failed to upload s3://{self.bucket_name}/{key}: {error_code} - {error_message}"
            ) from e
        except BotoCoreError as e:
            raise PersistenceFailure(
                f"AWS service error uploading s3://{self.bucket_name}/{key}: {e}"
            ) from e

        logger.info("Uploaded s3://%s/%s", self.bucket_name, key)
        return f"s3://{self.bucket_name}/{key}"
