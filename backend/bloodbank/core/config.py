from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MIB = 1024 * 1024


class AccountGrant(BaseModel):
    password: str
    roles: list[str] = Field(default_factory=list)
    capabilities: list[str] = Field(default_factory=list)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Storage roots ---
    project_dir: Path = Field(default_factory=Path.cwd, alias="PROJECT_DIR")
    ephemeral_host: bool = Field(False, validation_alias=AliasChoices("EPHEMERAL_HOST", "VERCEL"))
    ephemeral_dir: Path = Field(Path("/tmp"), alias="EPHEMERAL_DIR")

    report_max_bytes: int = Field(10 * MIB, alias="REPORT_MAX_BYTES")
    media_max_bytes: int = Field(10 * MIB, alias="MEDIA_MAX_BYTES")
    media_serve_max_bytes: int = Field(10 * MIB, alias="MEDIA_SERVE_MAX_BYTES")

    # --- Blob mirror (S3 compatible) ---
    # Setting a bucket turns the mirror on; everything else is optional.
    blob_bucket: str | None = Field(None, alias="BLOB_BUCKET")
    blob_region: str | None = Field(None, alias="BLOB_REGION")
    blob_endpoint_url: str | None = Field(None, alias="BLOB_ENDPOINT_URL")
    blob_access_key_id: str | None = Field(None, alias="BLOB_ACCESS_KEY_ID")
    blob_secret_access_key: str | None = Field(None, alias="BLOB_SECRET_ACCESS_KEY")
    blob_public_base_url: str | None = Field(None, alias="BLOB_PUBLIC_BASE_URL")
    blob_key_prefix: str = Field("public", alias="BLOB_KEY_PREFIX")

    # --- Accounts ---
    basic_auth_username: str | None = Field(None, alias="BASIC_AUTH_USERNAME")
    basic_auth_password: str | None = Field(None, alias="BASIC_AUTH_PASSWORD")
    auth_users: dict[str, AccountGrant] = Field(default_factory=dict, alias="AUTH_USERS")
    auth_roles: dict[str, list[str]] = Field(default_factory=dict, alias="AUTH_ROLES")

    cors_origins: str | None = Field(None, alias="CORS_ORIGINS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @field_validator(
        "blob_bucket",
        "blob_region",
        "blob_endpoint_url",
        "blob_access_key_id",
        "blob_secret_access_key",
        "blob_public_base_url",
        "basic_auth_username",
        "basic_auth_password",
        "cors_origins",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, v: object) -> object:
        if isinstance(v, str):
            value = v.strip()
            return value or None
        return v

    @field_validator("ephemeral_host", mode="before")
    @classmethod
    def _normalize_ephemeral_host(cls, v: object) -> object:
        # Hosting platforms only promise the variable is set, not what it holds.
        if isinstance(v, str):
            value = v.strip().lower()
            return bool(value) and value not in {"0", "false", "no", "off"}
        return v

    @field_validator("blob_key_prefix", mode="before")
    @classmethod
    def _normalize_blob_key_prefix(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().strip("/")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    @property
    def storage_root(self) -> Path:
        """
        Root of all locally stored files.

        Long-lived hosts keep files under the project directory; ephemeral
        (serverless) hosts only have a writable temp directory.
        """
        base = self.ephemeral_dir if self.ephemeral_host else self.project_dir
        return base / "storage"

    @property
    def blob_enabled(self) -> bool:
        return self.blob_bucket is not None


@lru_cache
def get_settings() -> Settings:
    return Settings()
