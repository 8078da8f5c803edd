from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from bloodbank.core.config import Settings


LOCAL_URL_PREFIX = "/storage/"

REPORTS_NAMESPACE = "reports"
MEDIA_NAMESPACE = "media"


class StorageError(ValueError):
    """Raised when a payload is rejected by a storage backend."""


class StoredFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    original_name: str
    key: str = Field(..., description="Path relative to the storage root")
    url: str
    file_size: int
    mime_type: str

    width: int | None = None
    height: int | None = None
    blur_data_url: str | None = None
    tags: list[str] | None = None


@dataclass(frozen=True)
class BlobConfig:
    bucket: str
    region: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    public_base_url: str | None = None
    key_prefix: str = "public"


@dataclass(frozen=True)
class StorageConfig:
    root: Path
    report_max_bytes: int
    media_max_bytes: int
    media_serve_max_bytes: int
    blob: BlobConfig | None = None

    @property
    def blob_enabled(self) -> bool:
        return self.blob is not None

    @property
    def reports_dir(self) -> Path:
        return self.root / REPORTS_NAMESPACE

    @property
    def media_dir(self) -> Path:
        return self.root / MEDIA_NAMESPACE

    @classmethod
    def from_settings(cls, settings: Settings) -> StorageConfig:
        blob = None
        if settings.blob_bucket:
            blob = BlobConfig(
                bucket=settings.blob_bucket,
                region=settings.blob_region,
                endpoint_url=settings.blob_endpoint_url,
                access_key_id=settings.blob_access_key_id,
                secret_access_key=settings.blob_secret_access_key,
                public_base_url=settings.blob_public_base_url,
                key_prefix=settings.blob_key_prefix,
            )
        return cls(
            root=settings.storage_root,
            report_max_bytes=settings.report_max_bytes,
            media_max_bytes=settings.media_max_bytes,
            media_serve_max_bytes=settings.media_serve_max_bytes,
            blob=blob,
        )


class StorageBackend(Protocol):
    def store(
        self,
        data: bytes,
        filename: str,
        *,
        content_type: str,
        folder: str | None = None,
        **options: Any,
    ) -> StoredFile: ...
