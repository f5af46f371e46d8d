"""Blob store collaborators for package tarballs."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Protocol

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from registry_api.config.settings import RegistrySettings, get_settings
from registry_api.streams import ByteSource, copy_stream

LOGGER = logging.getLogger(__name__)

BLOB_KEY_PREFIX = "pkg"
STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_SERVER_ERROR = 500


def package_blob_path(name: str, version: str) -> str:
    return f"{name}/{name}-{version}.tar.gz"


def _check_path(path: str) -> PurePosixPath:
    relative = PurePosixPath(path)
    if relative.is_absolute() or not relative.parts:
        raise ValueError(f"invalid blob path: {path!r}")
    for part in relative.parts:
        if part in {".", ".."} or "\\" in part:
            raise ValueError(f"invalid blob path: {path!r}")
    return relative


class BlobStore(Protocol):
    def put(
        self,
        path: str,
        stream: ByteSource,
        *,
        content_length: int | None,
        content_type: str,
        content_encoding: str,
    ) -> int: ...

    def delete(self, path: str) -> None: ...

    def public_url(self, path: str) -> str: ...


class LocalBlobStore:
    """Stores blobs under ``<root>/pkg`` on the local filesystem.

    Writes go to a ``.part`` sibling that is renamed into place once the whole
    stream has been copied, so a reader never sees a truncated tarball.
    """

    def __init__(self, root: Path, *, host: str) -> None:
        self._root = Path(root).expanduser().resolve()
        self._host = host

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        return self._root / BLOB_KEY_PREFIX / _check_path(path)

    def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    def put(
        self,
        path: str,
        stream: ByteSource,
        *,
        content_length: int | None,
        content_type: str,
        content_encoding: str,
    ) -> int:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        try:
            with partial.open("wb") as handle:
                copied = copy_stream(stream, handle)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
        if content_length is not None and copied != content_length:
            LOGGER.warning(
                "Blob %s length mismatch: declared %s, received %s",
                path,
                content_length,
                copied,
            )
            partial.unlink(missing_ok=True)
            return STATUS_BAD_REQUEST
        partial.replace(target)
        LOGGER.debug("Stored blob %s (%s bytes, %s/%s)", path, copied, content_type, content_encoding)
        return STATUS_OK

    def delete(self, path: str) -> None:
        self.resolve(path).unlink(missing_ok=True)

    def public_url(self, path: str) -> str:
        return f"https://{self._host}/{BLOB_KEY_PREFIX}/{_check_path(path)}"


class S3BlobStore:
    """Stores blobs in an S3 bucket under the ``pkg/`` key prefix."""

    def __init__(
        self,
        bucket: str,
        *,
        host: str | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
        proxy: str | None = None,
        client: Any | None = None,
    ) -> None:
        self._bucket = bucket
        self._host = host or f"{bucket}.s3.amazonaws.com"
        if client is None:
            config = BotoConfig(proxies={"http": proxy, "https": proxy}) if proxy else None
            client = boto3.session.Session().client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url,
                config=config,
            )
        self._client = client

    def _key(self, path: str) -> str:
        return f"{BLOB_KEY_PREFIX}/{_check_path(path)}"

    def put(
        self,
        path: str,
        stream: ByteSource,
        *,
        content_length: int | None,
        content_type: str,
        content_encoding: str,
    ) -> int:
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": self._key(path),
            "Body": stream,
            "ContentType": content_type,
            "ContentEncoding": content_encoding,
        }
        if content_length is not None:
            params["ContentLength"] = content_length
        try:
            response = self._client.put_object(**params)
        except ClientError as exc:
            status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            LOGGER.error("S3 rejected upload of %s: %s", path, exc)
            return int(status or STATUS_SERVER_ERROR)
        except BotoCoreError as exc:
            LOGGER.error("S3 upload of %s failed: %s", path, exc)
            return STATUS_SERVER_ERROR
        return int(response.get("ResponseMetadata", {}).get("HTTPStatusCode", STATUS_OK))

    def delete(self, path: str) -> None:
        self._client.delete_object(Bucket=self._bucket, Key=self._key(path))

    def public_url(self, path: str) -> str:
        return f"https://{self._host}/{self._key(path)}"


def build_blob_store(settings: RegistrySettings | None = None) -> BlobStore:
    settings = settings or get_settings()
    if settings.blob_backend == "s3":
        if not settings.s3_bucket:
            raise ValueError("REGISTRY_S3_BUCKET is required for the s3 blob backend.")
        return S3BlobStore(
            settings.s3_bucket,
            host=settings.blob_host,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            proxy=settings.s3_proxy,
        )
    return LocalBlobStore(settings.storage_root, host=settings.blob_host)


__all__ = [
    "BLOB_KEY_PREFIX",
    "BlobStore",
    "LocalBlobStore",
    "S3BlobStore",
    "STATUS_OK",
    "build_blob_store",
    "package_blob_path",
]
