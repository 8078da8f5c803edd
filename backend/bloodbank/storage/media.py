from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from typing import Any

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from bloodbank.storage.base import MEDIA_NAMESPACE, StorageError, StoredFile
from bloodbank.storage.local import LocalStorage, unique_filename


DEFAULT_MEDIA_FOLDER = "uploads"
DEFAULT_QUALITY = 80
BLUR_SIZE = 10

ALLOWED_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})

# GIFs may be animated; re-encoding would drop frames.
PASSTHROUGH_TYPES = frozenset({"image/gif"})


@dataclass(frozen=True)
class ProcessedImage:
    data: bytes
    mime_type: str
    suffix: str
    width: int
    height: int
    blur_data_url: str


def _blur_placeholder(img: Image.Image) -> str:
    thumb = img.copy()
    thumb.thumbnail((BLUR_SIZE, BLUR_SIZE))
    thumb = thumb.filter(ImageFilter.GaussianBlur(radius=1))
    buf = io.BytesIO()
    thumb.save(buf, format="WEBP", quality=40)
    return "data:image/webp;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def _open_image(data: bytes) -> Image.Image:
    try:
        with Image.open(io.BytesIO(data)) as probe:
            probe.verify()
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise StorageError("File does not appear to be a valid image file.") from e
    return img


def process_image(data: bytes, *, content_type: str, quality: int = DEFAULT_QUALITY) -> ProcessedImage:
    img = _open_image(data)

    if content_type in PASSTHROUGH_TYPES:
        return ProcessedImage(
            data=data,
            mime_type=content_type,
            suffix=".gif",
            width=img.width,
            height=img.height,
            blur_data_url=_blur_placeholder(img.convert("RGBA")),
        )

    img = ImageOps.exif_transpose(img)
    if img.mode not in ("RGB", "RGBA"):
        has_alpha = "A" in img.getbands() or "transparency" in img.info
        img = img.convert("RGBA" if has_alpha else "RGB")

    buf = io.BytesIO()
    img.save(buf, format="WEBP", quality=quality)
    return ProcessedImage(
        data=buf.getvalue(),
        mime_type="image/webp",
        suffix=".webp",
        width=img.width,
        height=img.height,
        blur_data_url=_blur_placeholder(img),
    )


class MediaStorage(LocalStorage):
    namespace = MEDIA_NAMESPACE

    def store(
        self,
        data: bytes,
        filename: str,
        *,
        content_type: str,
        folder: str | None = None,
        quality: int = DEFAULT_QUALITY,
        tags: list[str] | None = None,
        **options: Any,
    ) -> StoredFile:
        max_bytes = self.config.media_max_bytes
        if len(data) > max_bytes:
            raise StorageError(
                f"File size ({len(data) / 1024 / 1024:.2f}MB) exceeds maximum allowed size "
                f"({max_bytes / 1024 / 1024:.0f}MB)"
            )
        if content_type not in ALLOWED_TYPES:
            raise StorageError(f'File type "{content_type}" is not allowed.')
        if not 1 <= quality <= 100:
            raise StorageError("Quality must be between 1 and 100.")

        processed = process_image(data, content_type=content_type, quality=quality)
        return self.write(
            processed.data,
            filename=unique_filename(filename, suffix=processed.suffix),
            original_name=filename,
            mime_type=processed.mime_type,
            folder=folder or DEFAULT_MEDIA_FOLDER,
            width=processed.width,
            height=processed.height,
            blur_data_url=processed.blur_data_url,
            tags=tags or None,
        )
