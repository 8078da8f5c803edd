from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile

from bloodbank.api.deps import get_blob_mirror, get_media_storage
from bloodbank.core.errors import BadRequest
from bloodbank.core.security import CurrentUser, require_capability
from bloodbank.schemas.uploads import ErrorOut, UploadOut
from bloodbank.storage.blob import BlobMirror
from bloodbank.storage.media import DEFAULT_QUALITY, MediaStorage


logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_tags(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    tags = [t.strip() for t in raw.split(",") if t.strip()]
    return tags or None


def _parse_quality(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_QUALITY
    try:
        return int(raw)
    except ValueError as e:
        raise BadRequest("Quality must be an integer") from e


@router.post(
    "",
    response_model=UploadOut,
    responses={400: {"model": ErrorOut}, 401: {"model": ErrorOut}, 403: {"model": ErrorOut}},
)
async def upload_media(
    file: UploadFile | None = File(None),
    folder: str | None = Form(None),
    tags: str | None = Form(None),
    quality: str | None = Form(None),
    user: CurrentUser = Depends(
        require_capability("media.upload", message="You don't have permission to upload media")
    ),
    storage: MediaStorage = Depends(get_media_storage),
    mirror: BlobMirror = Depends(get_blob_mirror),
) -> UploadOut:
    if file is None:
        raise BadRequest("No file provided")
    quality_value = _parse_quality(quality)

    try:
        content = await file.read()
        stored = storage.store(
            content,
            file.filename or "upload",
            content_type=file.content_type or "application/octet-stream",
            folder=folder or None,
            quality=quality_value,
            tags=_parse_tags(tags),
        )
        stored = mirror.promote(stored)
    except Exception as e:
        logger.exception("Media upload failed for %s", user.username)
        raise BadRequest(str(e) or "Failed to upload file") from e

    return UploadOut(data=stored)
