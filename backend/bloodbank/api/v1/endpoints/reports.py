from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile

from bloodbank.api.deps import get_report_storage
from bloodbank.core.errors import BadRequest
from bloodbank.core.security import CurrentUser, require_capability
from bloodbank.schemas.uploads import ErrorOut, UploadOut
from bloodbank.storage.reports import DEFAULT_REPORT_FOLDER, PDF_MEDIA_TYPE, ReportStorage


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/upload",
    response_model=UploadOut,
    responses={400: {"model": ErrorOut}, 401: {"model": ErrorOut}, 403: {"model": ErrorOut}},
)
async def upload_report(
    file: UploadFile | None = File(None),
    folder: str | None = Form(None),
    user: CurrentUser = Depends(
        require_capability("donor.update", message="You don't have permission to upload reports")
    ),
    storage: ReportStorage = Depends(get_report_storage),
) -> UploadOut:
    if file is None:
        raise BadRequest("No file provided")
    if file.content_type != PDF_MEDIA_TYPE:
        logger.warning("Rejected report upload with content type %r from %s", file.content_type, user.username)
        raise BadRequest("Only PDF files are allowed")

    try:
        content = await file.read()
        stored = storage.store(
            content,
            file.filename or "report.pdf",
            content_type=file.content_type,
            folder=folder or DEFAULT_REPORT_FOLDER,
        )
    except Exception as e:
        logger.exception("PDF upload failed for %s", user.username)
        raise BadRequest(str(e) or "Failed to upload PDF file") from e

    return UploadOut(data=stored)
