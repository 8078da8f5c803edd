from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Response

from bloodbank.api.deps import get_media_storage, get_report_storage
from bloodbank.core.errors import (
    ApiError,
    BadRequest,
    Forbidden,
    InternalError,
    NotFound,
    PayloadTooLarge,
    PlainTextErrorRoute,
)
from bloodbank.core.security import CurrentUser, require_capability
from bloodbank.storage.local import UnsafePathError, is_unsafe_relative_path
from bloodbank.storage.media import MediaStorage
from bloodbank.storage.reports import PDF_MEDIA_TYPE, ReportStorage


logger = logging.getLogger(__name__)

router = APIRouter(route_class=PlainTextErrorRoute)

# Public media keeps the JSON error envelope used by the rest of the API.
media_router = APIRouter()

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".mp4": "video/mp4",
    ".mp3": "audio/mpeg",
    ".json": "application/json",
    ".txt": "text/plain",
}


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


@router.get("/reports/{file_path:path}")
async def serve_report(
    file_path: str,
    user: CurrentUser = Depends(require_capability("donor.read")),
    storage: ReportStorage = Depends(get_report_storage),
) -> Response:
    """
    Serve a stored blood report to a reader.

    The path suffix is rejected textually before it is joined with the
    reports root, and the joined path must stay inside that root.
    """
    if is_unsafe_relative_path(file_path):
        raise BadRequest("Invalid path")

    try:
        abs_path = storage.resolve(file_path)
        if not storage.exists(abs_path):
            raise NotFound("File not found")
        content = storage.read(abs_path)
    except UnsafePathError as e:
        raise BadRequest("Invalid path") from e
    except ApiError:
        raise
    except Exception as e:
        logger.exception("Error serving report %s to %s", file_path, user.username)
        raise InternalError() from e

    return Response(
        content=content,
        media_type=PDF_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'inline; filename="{abs_path.name}"',
            "Cache-Control": "private, max-age=3600",
        },
    )


@media_router.get("/media/{file_path:path}")
async def serve_media(
    file_path: str,
    storage: MediaStorage = Depends(get_media_storage),
) -> Response:
    """Public media files (images and other processed uploads)."""
    if is_unsafe_relative_path(file_path) or "\\" in file_path:
        raise BadRequest("Invalid file path")

    try:
        abs_path = storage.resolve(file_path)
        if not storage.exists(abs_path):
            raise NotFound("File not found")
        if storage.size(abs_path) > storage.config.media_serve_max_bytes:
            raise PayloadTooLarge("File too large")
        content = storage.read(abs_path)
    except UnsafePathError as e:
        raise Forbidden("Invalid file path") from e
    except ApiError:
        raise
    except Exception as e:
        logger.exception("Error serving media file %s", file_path)
        raise InternalError("Failed to serve file") from e

    return Response(
        content=content,
        media_type=content_type_for(abs_path),
        headers={
            "Cache-Control": "public, max-age=31536000, immutable",
            "Accept-Ranges": "bytes",
        },
    )
