"""
Optional object-storage mirror for uploaded media.

Local processing always runs first; when a bucket is configured the stored
file is re-published to S3 compatible storage and the returned record points
at the public object URL instead of the local one. Without a bucket the
mirror is a passthrough.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import boto3

from bloodbank.storage.base import LOCAL_URL_PREFIX, BlobConfig, StorageConfig, StorageError, StoredFile

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client


logger = logging.getLogger(__name__)


class BlobMirror(Protocol):
    enabled: bool

    def promote(self, stored: StoredFile) -> StoredFile: ...


class PassthroughMirror:
    enabled = False

    def promote(self, stored: StoredFile) -> StoredFile:
        return stored


def blob_key_for(stored: StoredFile, *, key_prefix: str = "") -> str:
    """
    Map a local URL onto an object key.

    `/storage/media/uploads/a.webp` becomes `<prefix>/media/uploads/a.webp`.
    """
    if not stored.url.startswith(LOCAL_URL_PREFIX):
        raise StorageError(f"Not a local storage URL: {stored.url}")
    rel = stored.url[len(LOCAL_URL_PREFIX) :]
    return f"{key_prefix}/{rel}" if key_prefix else rel


class S3BlobMirror:
    enabled = True

    def __init__(self, root: Path, blob: BlobConfig, *, client: S3Client | Any | None = None) -> None:
        self.root = root
        self.blob = blob
        self._client = client

    @property
    def client(self) -> S3Client:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.blob.region,
                endpoint_url=self.blob.endpoint_url,
                aws_access_key_id=self.blob.access_key_id,
                aws_secret_access_key=self.blob.secret_access_key,
            )
        return self._client

    def public_url(self, key: str) -> str:
        if self.blob.public_base_url:
            return f"{self.blob.public_base_url.rstrip('/')}/{key}"
        if self.blob.endpoint_url:
            return f"{self.blob.endpoint_url.rstrip('/')}/{self.blob.bucket}/{key}"
        if self.blob.region:
            return f"https://{self.blob.bucket}.s3.{self.blob.region}.amazonaws.com/{key}"
        return f"https://{self.blob.bucket}.s3.amazonaws.com/{key}"

    def promote(self, stored: StoredFile) -> StoredFile:
        body = (self.root / stored.key).read_bytes()
        key = blob_key_for(stored, key_prefix=self.blob.key_prefix)

        self.client.put_object(
            Bucket=self.blob.bucket,
            Key=key,
            Body=body,
            ContentType=stored.mime_type,
            ACL="public-read",
        )
        url = self.public_url(key)
        logger.info("Mirrored %s to %s", stored.key, url)
        return stored.model_copy(update={"url": url})


def build_blob_mirror(config: StorageConfig, *, client: Any | None = None) -> BlobMirror:
    if config.blob is None:
        return PassthroughMirror()
    return S3BlobMirror(config.root, config.blob, client=client)
