from __future__ import annotations

from pydantic import BaseModel

from bloodbank.storage.base import StoredFile


class UploadOut(BaseModel):
    success: bool = True
    data: StoredFile


class ErrorOut(BaseModel):
    error: str
