"""
Object storage for post images: S3-compatible buckets and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Protocol
from urllib.parse import quote
import logging

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

PUBLIC_READ_ACL = "public-read"


class ObjectStore(Protocol):
    """Defines the operations ingestion needs from object storage."""

    def put(
        self, key: str, stream: BinaryIO, content_type: Optional[str] = None
    ) -> str:
        """Store the stream under `key`, grant public read, return its URL."""
        ...


@dataclass
class InMemoryObjectStore:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    bucket_exists: bool = True
    stored_objects: dict = field(default_factory=dict)
    acls: dict = field(default_factory=dict)

    def put(
        self, key: str, stream: BinaryIO, content_type: Optional[str] = None
    ) -> str:
        if not self.bucket_exists:
            raise FileNotFoundError(f"bucket missing for {key}")
        self.stored_objects[key] = stream.read()
        self.acls[key] = PUBLIC_READ_ACL
        return f"{self.base_url}/{quote(key)}"

    def get_bytes(self, key: str) -> bytes:
        stored = self.stored_objects.get(key)
        if stored is None:
            raise FileNotFoundError(key)
        return stored


@dataclass
class S3ObjectStore:
    """
    S3-compatible image store (AWS S3, Tencent COS, MinIO, GCS interop).

    Objects are written with a public-read ACL and addressed by a stable URL
    built from `public_base_url`, or from the endpoint and bucket when unset.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quote(key)}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{quote(key)}"
        return f"https://{self.bucket}.s3.amazonaws.com/{quote(key)}"

    def put(
        self, key: str, stream: BinaryIO, content_type: Optional[str] = None
    ) -> str:
        # Raises ClientError (404/403) when the bucket is missing or hidden.
        self._client.head_bucket(Bucket=self.bucket)

        extra_args = {"ACL": PUBLIC_READ_ACL}
        if content_type:
            extra_args["ContentType"] = content_type
        self._client.upload_fileobj(stream, self.bucket, key, ExtraArgs=extra_args)

        url = self.public_url(key)
        logger.info("Image saved to object store: %s", url)
        return url
