"""Registry configuration using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import Field, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_VAR_ROOT = PROJECT_ROOT / "var"


class RegistryApiSettings(BaseSettings):
    """Process/runtime settings for the registry API server."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="REGISTRY_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="127.0.0.1", description="Bind address for the registry API.")
    port: PositiveInt = Field(default=8320, description="Port for the registry API.")
    reload: bool = Field(default=False, description="Enable uvicorn auto-reload (dev only).")
    log_level: Literal["critical", "error", "warning", "info", "debug", "trace"] = Field(
        default="info",
        description="Log level for registry API / uvicorn.",
    )
    cors_origins: list[str] = Field(
        default_factory=list,
        description="Origins allowed to call the API from a browser; CORS stays off when empty.",
    )


class RegistrySettings(BaseSettings):
    """Validated settings for the publish and retrieval core."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="REGISTRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL of the catalog database (defaults to a local SQLite file).",
    )
    max_upload_size: PositiveInt = Field(
        default=10 * 1024 * 1024,
        description="Maximum accepted tarball size in bytes.",
    )
    blob_backend: Literal["local", "s3"] = Field(
        default="local",
        description="Blob store implementation used for package tarballs.",
    )
    storage_root: Path = Field(
        default=DEFAULT_VAR_ROOT / "registry" / "storage",
        description="Root directory of the local blob store.",
    )
    blob_host: str = Field(
        default="localhost:8320",
        description="Public host serving blobs; download redirects point at https://<host>/pkg/...",
    )
    s3_bucket: str | None = Field(default=None, description="Bucket used by the S3 blob store.")
    s3_region: str | None = Field(default=None, description="Region of the S3 bucket.")
    s3_endpoint_url: str | None = Field(
        default=None,
        description="Custom S3 endpoint (S3-compatible services).",
    )
    s3_proxy: str | None = Field(
        default=None,
        description="Outbound proxy used for blob store requests.",
    )
    index_root: Path = Field(
        default=DEFAULT_VAR_ROOT / "registry" / "index",
        description="Root directory of the append-only package index.",
    )
    bootstrap_user: str | None = Field(
        default=None,
        description="Login of an account seeded on startup.",
    )
    bootstrap_api_token: str | None = Field(
        default=None,
        description="API token of the seeded account.",
    )


@lru_cache()
def get_settings() -> RegistrySettings:
    """Return memoized registry settings."""

    return RegistrySettings()


@lru_cache()
def get_api_settings() -> RegistryApiSettings:
    """Return memoized API process settings."""

    return RegistryApiSettings()
