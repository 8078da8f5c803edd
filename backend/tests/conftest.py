from __future__ import annotations

import json
import sys
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from bloodbank.core.config import Settings, get_settings  # noqa: E402
from bloodbank.main import create_app  # noqa: E402


# 10 bytes with a valid PDF signature.
PDF_BYTES = b"%PDF-1.4\n%"

EDITOR = ("editor", "editor-pass")
READER = ("reader", "reader-pass")
VISITOR = ("visitor", "visitor-pass")

_USERS = {
    "editor": {"password": "editor-pass", "roles": ["media-manager"], "capabilities": ["donor.update"]},
    "reader": {"password": "reader-pass", "capabilities": ["donor.read"]},
    "visitor": {"password": "visitor-pass"},
}
_ROLES = {"media-manager": ["media.upload"]}

_CLEARED_ENV = (
    "EPHEMERAL_HOST",
    "VERCEL",
    "EPHEMERAL_DIR",
    "BLOB_BUCKET",
    "BLOB_REGION",
    "BLOB_ENDPOINT_URL",
    "BLOB_PUBLIC_BASE_URL",
    "BLOB_KEY_PREFIX",
    "BASIC_AUTH_USERNAME",
    "BASIC_AUTH_PASSWORD",
    "REPORT_MAX_BYTES",
    "MEDIA_MAX_BYTES",
    "MEDIA_SERVE_MAX_BYTES",
    "CORS_ORIGINS",
)


def stored_files(root: Path) -> list[Path]:
    if not root.exists():
        return []
    return [p for p in root.rglob("*") if p.is_file()]


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Iterator[Settings]:
    for name in _CLEARED_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PROJECT_DIR", str(tmp_path / "project"))
    monkeypatch.setenv("AUTH_USERS", json.dumps(_USERS))
    monkeypatch.setenv("AUTH_ROLES", json.dumps(_ROLES))
    get_settings.cache_clear()

    yield get_settings()

    get_settings.cache_clear()


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
