"""
S3/MinIO Storage Backend.

For production deployments with object storage. One bucket
(settings.pdf_bucket) is reserved for rendered documents.
"""
import logging
import re

import boto3
from botocore.exceptions import ClientError

from ..core.config import settings
from .storage_backend import StorageBackend

logger = logging.getLogger(__name__)

BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


class S3Storage(StorageBackend):
    """S3/MinIO object storage."""

    def __init__(self, client=None, bucket: str | None = None):
        self.s3 = client or boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
        )
        self.bucket = bucket or settings.pdf_bucket
        if not BUCKET_NAME_PATTERN.match(self.bucket) or ".." in self.bucket:
            raise ValueError(f"Invalid S3 bucket name: {self.bucket!r}")

        if client is None:
            self._ensure_bucket()

        logger.info(f"S3Storage initialized: bucket={self.bucket}, endpoint={settings.s3_endpoint_url}")

    def _ensure_bucket(self):
        """Create bucket if it doesn't exist (MinIO friendly)."""
        try:
            self.s3.head_bucket(Bucket=self.bucket)
            logger.debug(f"Bucket exists: {self.bucket}")
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in ("404", "NoSuchBucket"):
                logger.warning(f"Bucket check failed: {e}")
                return
            try:
                if settings.s3_endpoint_url:
                    # MinIO: no region constraint
                    self.s3.create_bucket(Bucket=self.bucket)
                else:
                    self.s3.create_bucket(
                        Bucket=self.bucket,
                        CreateBucketConfiguration={"LocationConstraint": settings.s3_region},
                    )
                logger.info(f"Created bucket: {self.bucket}")
            except ClientError as create_err:
                logger.warning(f"Could not create bucket {self.bucket}: {create_err}")

    def put_bytes(self, key: str, data: bytes, content_type: str) -> None:
        """Store bytes to S3/MinIO (PUT overwrites)."""
        self.s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        logger.debug(f"Stored {len(data)} bytes to s3://{self.bucket}/{key}")

    def get_bytes(self, key: str) -> bytes:
        """Read bytes from S3/MinIO."""
        obj = self.s3.get_object(Bucket=self.bucket, Key=key)
        return obj["Body"].read()

    def exists(self, key: str) -> bool:
        """Check if object exists."""
        try:
            self.s3.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError:
            return False

    def delete(self, key: str) -> bool:
        """Delete object. S3 DELETE is idempotent; report whether it existed."""
        existed = self.exists(key)
        self.s3.delete_object(Bucket=self.bucket, Key=key)
        return existed
