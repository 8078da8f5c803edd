from __future__ import annotations

import os
from pathlib import Path

import pytest

from bloodbank.api.deps import get_report_storage
from bloodbank.api.v1.endpoints.storage import serve_media, serve_report
from bloodbank.core.errors import BadRequest, Forbidden, NotFound, PayloadTooLarge
from bloodbank.core.security import CurrentUser
from bloodbank.storage.base import StorageConfig
from bloodbank.storage.media import MediaStorage
from bloodbank.storage.reports import ReportStorage
from conftest import PDF_BYTES, READER, VISITOR


READER_USER = CurrentUser(username="reader", capabilities=frozenset({"donor.read"}))


class SpyReportStorage(ReportStorage):
    def __init__(self, config: StorageConfig, *, fail_read: bool = False) -> None:
        super().__init__(config)
        self.calls: list[str] = []
        self.fail_read = fail_read

    def resolve(self, relative_path: str) -> Path:
        self.calls.append("resolve")
        return super().resolve(relative_path)

    def exists(self, path: Path) -> bool:
        self.calls.append("exists")
        return super().exists(path)

    def read(self, path: Path) -> bytes:
        self.calls.append("read")
        if self.fail_read:
            raise PermissionError(f"permission denied: {path}")
        return super().read(path)


def _write_report(app, rel: str, content: bytes = PDF_BYTES) -> Path:
    path = app.state.storage_config.reports_dir / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.mark.asyncio
async def test_serve_report_returns_pdf_with_inline_private_headers(app, client) -> None:
    _write_report(app, "blood-reports/cbc.pdf")

    response = await client.get("/storage/reports/blood-reports/cbc.pdf", auth=READER)

    assert response.status_code == 200
    assert response.content == PDF_BYTES
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'inline; filename="cbc.pdf"'
    assert response.headers["cache-control"] == "private, max-age=3600"


@pytest.mark.asyncio
async def test_serve_report_requires_credentials_and_touches_nothing(app, client) -> None:
    spy = SpyReportStorage(app.state.storage_config)
    app.dependency_overrides[get_report_storage] = lambda: spy

    response = await client.get("/storage/reports/blood-reports/cbc.pdf")

    assert response.status_code == 401
    assert response.text == "Unauthorized"
    assert response.headers["content-type"].startswith("text/plain")
    assert spy.calls == []


@pytest.mark.asyncio
async def test_serve_report_rejects_wrong_password(client) -> None:
    response = await client.get("/storage/reports/blood-reports/cbc.pdf", auth=("reader", "nope"))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_serve_report_forbids_users_without_read_capability(app, client) -> None:
    spy = SpyReportStorage(app.state.storage_config)
    app.dependency_overrides[get_report_storage] = lambda: spy

    response = await client.get("/storage/reports/blood-reports/cbc.pdf", auth=VISITOR)

    assert response.status_code == 403
    assert response.text == "Forbidden"
    assert spy.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["../../etc/passwd", "blood-reports/../../secret.pdf", "/etc/passwd", "..\\secret.pdf"])
async def test_serve_report_rejects_traversal_without_filesystem_access(app, path: str) -> None:
    spy = SpyReportStorage(app.state.storage_config)

    with pytest.raises(BadRequest) as exc:
        await serve_report(path, user=READER_USER, storage=spy)

    assert exc.value.status_code == 400
    assert spy.calls == []


@pytest.mark.asyncio
async def test_serve_report_rejects_encoded_backslash_traversal_over_http(client) -> None:
    response = await client.get("/storage/reports/..%5Csecret.pdf", auth=READER)
    assert response.status_code == 400
    assert response.text == "Invalid path"


@pytest.mark.asyncio
async def test_serve_report_rejects_symlink_escaping_reports_root(app, tmp_path: Path) -> None:
    outside = tmp_path / "outside.pdf"
    outside.write_bytes(PDF_BYTES)
    reports_dir = app.state.storage_config.reports_dir
    reports_dir.mkdir(parents=True, exist_ok=True)
    os.symlink(outside, reports_dir / "escape.pdf")

    with pytest.raises(BadRequest):
        await serve_report("escape.pdf", user=READER_USER, storage=ReportStorage(app.state.storage_config))


@pytest.mark.asyncio
async def test_serve_report_returns_404_for_missing_file(app, client) -> None:
    spy = SpyReportStorage(app.state.storage_config)
    app.dependency_overrides[get_report_storage] = lambda: spy

    response = await client.get("/storage/reports/blood-reports/missing.pdf", auth=READER)

    assert response.status_code == 404
    assert response.text == "File not found"
    assert "read" not in spy.calls


@pytest.mark.asyncio
async def test_serve_report_hides_read_errors(app, client) -> None:
    _write_report(app, "blood-reports/locked.pdf")
    spy = SpyReportStorage(app.state.storage_config, fail_read=True)
    app.dependency_overrides[get_report_storage] = lambda: spy

    response = await client.get("/storage/reports/blood-reports/locked.pdf", auth=READER)

    assert response.status_code == 500
    assert response.text == "Internal Server Error"
    assert "permission denied" not in response.text
    assert spy.calls == ["resolve", "exists", "read"]


@pytest.mark.asyncio
async def test_serve_media_is_public_and_sets_content_type(app, client) -> None:
    path = app.state.storage_config.media_dir / "uploads" / "logo.webp"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"RIFF0000WEBP")

    response = await client.get("/storage/media/uploads/logo.webp")

    assert response.status_code == 200
    assert response.content == b"RIFF0000WEBP"
    assert response.headers["content-type"] == "image/webp"
    assert response.headers["cache-control"] == "public, max-age=31536000, immutable"
    assert response.headers["accept-ranges"] == "bytes"


@pytest.mark.asyncio
async def test_serve_media_falls_back_to_octet_stream(app, client) -> None:
    path = app.state.storage_config.media_dir / "uploads" / "blob.bin"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00\x01")

    response = await client.get("/storage/media/uploads/blob.bin")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/octet-stream"


@pytest.mark.asyncio
async def test_serve_media_returns_404_for_missing_and_directories(app) -> None:
    storage = MediaStorage(app.state.storage_config)
    (storage.root / "uploads").mkdir(parents=True, exist_ok=True)

    with pytest.raises(NotFound):
        await serve_media("uploads/missing.png", storage=storage)
    with pytest.raises(NotFound):
        await serve_media("uploads", storage=storage)


@pytest.mark.asyncio
async def test_serve_media_rejects_traversal_and_escapes(app, tmp_path: Path) -> None:
    storage = MediaStorage(app.state.storage_config)
    storage.root.mkdir(parents=True, exist_ok=True)
    outside = tmp_path / "secret.txt"
    outside.write_text("secret")
    os.symlink(outside, storage.root / "link.txt")

    with pytest.raises(BadRequest):
        await serve_media("../secret.txt", storage=storage)
    with pytest.raises(BadRequest):
        await serve_media("uploads\\a.png", storage=storage)
    with pytest.raises(Forbidden):
        await serve_media("link.txt", storage=storage)


@pytest.mark.asyncio
async def test_serve_media_rejects_oversized_files(tmp_path: Path) -> None:
    config = StorageConfig(
        root=tmp_path / "storage",
        report_max_bytes=1024,
        media_max_bytes=1024,
        media_serve_max_bytes=4,
    )
    storage = MediaStorage(config)
    path = storage.root / "uploads" / "big.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"0123456789")

    with pytest.raises(PayloadTooLarge) as exc:
        await serve_media("uploads/big.png", storage=storage)
    assert exc.value.status_code == 413


@pytest.mark.asyncio
async def test_serve_media_errors_use_json_envelope(client) -> None:
    missing = await client.get("/storage/media/uploads/missing.png")
    traversal = await client.get("/storage/media/uploads%5C..%5Csecret.txt")

    assert missing.status_code == 404
    assert missing.json() == {"error": "File not found"}
    assert traversal.status_code == 400
    assert traversal.json() == {"error": "Invalid file path"}
