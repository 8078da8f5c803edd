from __future__ import annotations

from typing import Any

from bloodbank.storage.base import REPORTS_NAMESPACE, StorageError, StoredFile
from bloodbank.storage.local import LocalStorage, unique_filename


PDF_MEDIA_TYPE = "application/pdf"
PDF_SIGNATURE = b"%PDF"
DEFAULT_REPORT_FOLDER = "blood-reports"

ALLOWED_TYPES = frozenset({PDF_MEDIA_TYPE})


def looks_like_pdf(data: bytes) -> bool:
    return data[: len(PDF_SIGNATURE)] == PDF_SIGNATURE


class ReportStorage(LocalStorage):
    namespace = REPORTS_NAMESPACE

    def store(
        self,
        data: bytes,
        filename: str,
        *,
        content_type: str = PDF_MEDIA_TYPE,
        folder: str | None = None,
        **options: Any,
    ) -> StoredFile:
        max_bytes = self.config.report_max_bytes
        if len(data) > max_bytes:
            raise StorageError(
                f"File size ({len(data) / 1024 / 1024:.2f}MB) exceeds maximum allowed size "
                f"({max_bytes / 1024 / 1024:.0f}MB)"
            )
        if content_type not in ALLOWED_TYPES:
            raise StorageError(f'File type "{content_type}" is not allowed. Only PDF files are allowed.')
        if not looks_like_pdf(data):
            raise StorageError("File does not appear to be a valid PDF file.")

        return self.write(
            data,
            filename=unique_filename(filename),
            original_name=filename,
            mime_type=content_type,
            folder=folder,
        )
