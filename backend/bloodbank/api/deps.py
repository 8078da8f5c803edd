from __future__ import annotations

from fastapi import Request

from bloodbank.storage.blob import BlobMirror
from bloodbank.storage.media import MediaStorage
from bloodbank.storage.reports import ReportStorage


def get_report_storage(request: Request) -> ReportStorage:
    return request.app.state.report_storage


def get_media_storage(request: Request) -> MediaStorage:
    return request.app.state.media_storage


def get_blob_mirror(request: Request) -> BlobMirror:
    return request.app.state.blob_mirror
