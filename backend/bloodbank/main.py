from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bloodbank.api.v1.router import api_router, storage_router
from bloodbank.core.config import Settings, get_settings
from bloodbank.core.errors import ApiError, api_error_handler, validation_error_handler
from bloodbank.storage.base import StorageConfig
from bloodbank.storage.blob import build_blob_mirror
from bloodbank.storage.media import MediaStorage
from bloodbank.storage.reports import ReportStorage


logger = logging.getLogger(__name__)


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("bloodbank").setLevel(settings.log_level)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings)

    app = FastAPI(title="Blood Bank Files", version="1.0")

    if settings.cors_origins:
        origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    storage_config = StorageConfig.from_settings(settings)
    app.state.settings = settings
    app.state.storage_config = storage_config
    app.state.report_storage = ReportStorage(storage_config)
    app.state.media_storage = MediaStorage(storage_config)
    app.state.blob_mirror = build_blob_mirror(storage_config)
    logger.info(
        "Storage root %s (blob mirror %s)",
        storage_config.root,
        "enabled" if storage_config.blob_enabled else "disabled",
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/healthz/storage")
    async def storage_healthz() -> JSONResponse:
        root = storage_config.root
        writable = root.is_dir() and os.access(root, os.W_OK)
        payload: dict[str, Any] = {
            "status": "ok" if writable else "error",
            "checks": {
                "storage_root": str(root),
                "writable": writable,
                "blob_mirror": storage_config.blob_enabled,
            },
        }
        return JSONResponse(status_code=200 if writable else 503, content=payload)

    @app.on_event("startup")
    async def startup() -> None:
        app.state.report_storage.ensure_root()
        app.state.media_storage.ensure_root()

    app.include_router(api_router, prefix="/api/v1")
    app.include_router(storage_router)
    return app


app = create_app()
