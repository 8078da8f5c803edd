from __future__ import annotations

from fastapi import APIRouter

from bloodbank.api.v1.endpoints import reports, storage, uploads


api_router = APIRouter()

api_router.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])

# Served at the root so a StoredFile URL (`/storage/...`) is directly fetchable.
storage_router = APIRouter()
storage_router.include_router(storage.router, prefix="/storage", tags=["storage"])
storage_router.include_router(storage.media_router, prefix="/storage", tags=["storage"])
