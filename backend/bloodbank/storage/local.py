from __future__ import annotations

import logging
import re
import secrets
import time
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any

from bloodbank.storage.base import LOCAL_URL_PREFIX, StorageConfig, StorageError, StoredFile


logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
MAX_FILENAME_LENGTH = 255


class UnsafePathError(StorageError):
    pass


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name).replace("..", "")[:MAX_FILENAME_LENGTH]


def unique_filename(original_name: str, *, suffix: str | None = None) -> str:
    """
    Build `<stem>_<epoch ms>_<8 hex>.<ext>` from an uploaded filename.

    `suffix` overrides the extension, e.g. when the payload is re-encoded.
    """
    name = PureWindowsPath(PurePosixPath(original_name).name).name
    original_suffix = PurePosixPath(name).suffix
    stem = name[: -len(original_suffix)] if original_suffix else name
    ext = sanitize_filename((suffix if suffix is not None else original_suffix).lower())
    stem = sanitize_filename(stem) or "file"
    timestamp = int(time.time() * 1000)
    return f"{stem}_{timestamp}_{secrets.token_hex(4)}{ext}"


def is_unsafe_relative_path(relative_path: str) -> bool:
    """
    Textual check on an untrusted, slash-separated path suffix.

    Runs before the suffix is joined with a trusted root, so it never touches
    the filesystem.
    """
    if not relative_path:
        return True
    if relative_path.startswith(("/", "\\")):
        return True
    if PurePosixPath(relative_path).is_absolute() or PureWindowsPath(relative_path).drive:
        return True
    segments = re.split(r"[\\/]", relative_path)
    return any(segment == ".." for segment in segments)


class LocalStorage:
    """Writes and reads files below `<storage root>/<namespace>`."""

    namespace: str = ""

    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        self.root = config.root / self.namespace

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def write(
        self,
        data: bytes,
        *,
        filename: str,
        original_name: str,
        mime_type: str,
        folder: str | None = None,
        **extra: Any,
    ) -> StoredFile:
        folder = sanitize_filename(folder) if folder else ""
        target_dir = self.root / folder if folder else self.root
        target_dir.mkdir(parents=True, exist_ok=True)

        (target_dir / filename).write_bytes(data)

        rel = f"{folder}/{filename}" if folder else filename
        key = f"{self.namespace}/{rel}"
        logger.info("Stored %s (%d bytes)", key, len(data))
        return StoredFile(
            filename=filename,
            original_name=original_name,
            key=key,
            url=f"{LOCAL_URL_PREFIX}{key}",
            file_size=len(data),
            mime_type=mime_type,
            **extra,
        )

    def resolve(self, relative_path: str) -> Path:
        if is_unsafe_relative_path(relative_path):
            raise UnsafePathError("Invalid path")

        base_dir = self.root.resolve()
        abs_path = (self.root / relative_path).resolve()
        try:
            abs_path.relative_to(base_dir)
        except ValueError as e:
            raise UnsafePathError("Invalid path") from e
        return abs_path

    def exists(self, path: Path) -> bool:
        return path.is_file()

    def read(self, path: Path) -> bytes:
        return path.read_bytes()

    def size(self, path: Path) -> int:
        return path.stat().st_size
