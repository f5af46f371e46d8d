"""Publish saga: validate, reserve, upload and index one package version.

The catalog rows, the blob and the index entry live in stores that cannot
share a transaction. The saga runs the steps strictly in order and, once the
blob is written, keeps a :class:`BlobCompensation` armed until the index
accepts the entry. A failure before the upload aborts without touching any
external store. A failed upload or index step releases the version row, and
a failed index step also deletes the blob again.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from registry_api.config.settings import get_settings
from registry_api.db import SessionFactory, run_in_session
from registry_api.domain.dependency import parse_dependency_headers
from registry_api.domain.publish import NewPackage, PublishRequest
from registry_api.domain.validation import normalize_name, valid_name, valid_version
from registry_api.errors import (
    IndexingFailed,
    InvalidRequest,
    OwnershipConflict,
    PayloadTooLarge,
    RegistryError,
    UnknownDependency,
    UploadFailed,
    ValidationFailed,
    VersionAlreadyPublished,
)
from registry_api.infra.blob_store import STATUS_OK, BlobStore, build_blob_store, package_blob_path
from registry_api.infra.package_index import PackageIndex, build_package_index
from registry_api.streams import ChecksumReader

from .accounts import Account, AccountService
from .catalog import Package, PackageCatalog, Version

LOGGER = logging.getLogger(__name__)

TAR_CONTENT_TYPE = "application/x-tar"
GZIP_ENCODINGS = frozenset({"gzip", "x-gzip"})

_FEATURES_ADAPTER = TypeAdapter(dict[str, list[str]])


class PublishState(str, Enum):
    VALIDATING = "validating"
    RESERVING = "reserving"
    UPLOADING = "uploading"
    INDEXING = "indexing"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"


@dataclass(frozen=True)
class PublishOutcome:
    package: Package
    version: Version
    checksum: str


class BlobCompensation:
    """Deletes a freshly written blob on scope exit unless disarmed.

    The delete is best effort: its failure is logged and never replaces the
    error that triggered it.
    """

    def __init__(self, store: BlobStore, path: str) -> None:
        self._store = store
        self._path = path
        self._armed = True

    @property
    def armed(self) -> bool:
        return self._armed

    def disarm(self) -> None:
        self._armed = False

    def __enter__(self) -> "BlobCompensation":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._armed:
            self.fire()
        return False

    def fire(self) -> None:
        self._armed = False
        try:
            self._store.delete(self._path)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to delete orphaned blob %s: %s", self._path, exc)
            return
        LOGGER.info("Deleted blob %s after failed publish", self._path)


def _media_type(value: str | None) -> str:
    return (value or "").split(";", 1)[0].strip().lower()


def _require(value: str | None, header: str) -> str:
    if value is None or not value.strip():
        raise InvalidRequest(f"missing header: {header}")
    return value.strip()


def _parse_features(raw: str | None) -> dict[str, list[str]]:
    if raw is None or not raw.strip():
        return {}
    try:
        return _FEATURES_ADAPTER.validate_python(json.loads(raw))
    except (ValueError, ValidationError) as exc:
        raise InvalidRequest("malformed feature header") from exc


class PublishSaga:
    """One publish attempt; create a fresh saga per request."""

    def __init__(
        self,
        request: PublishRequest,
        *,
        catalog: PackageCatalog,
        accounts: AccountService,
        blob_store: BlobStore,
        index: PackageIndex,
        max_upload_size: int,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._request = request
        self._catalog = catalog
        self._accounts = accounts
        self._blob_store = blob_store
        self._index = index
        self._max_upload_size = max_upload_size
        self._session_factory = session_factory
        self._label = request.name or "<unnamed>"
        self.state = PublishState.VALIDATING

    def _transition(self, state: PublishState) -> None:
        LOGGER.debug("Publish %s: %s -> %s", self._label, self.state.value, state.value)
        self.state = state

    def run(self) -> PublishOutcome:
        try:
            new_package, account = self._validate()
            self._label = f"{new_package.name}@{new_package.vers}"
            self._transition(PublishState.RESERVING)
            package = self._reserve(new_package, account)
            version = self._insert_version(package, new_package)
        except Exception:
            self._transition(PublishState.ABORTED)
            raise

        self._transition(PublishState.UPLOADING)
        path = package_blob_path(new_package.name, new_package.vers)
        try:
            new_package.cksum = self._upload(path)
        except Exception:
            self._transition(PublishState.ROLLED_BACK)
            self._release(version)
            raise

        self._transition(PublishState.INDEXING)
        with BlobCompensation(self._blob_store, path) as guard:
            try:
                self._index.register(new_package.index_entry())
            except Exception as exc:
                LOGGER.exception("Index registration of %s failed", self._label)
                self._transition(PublishState.ROLLED_BACK)
                self._release(version)
                raise IndexingFailed(f"index registration of {self._label} failed") from exc
            guard.disarm()

        self._transition(PublishState.COMMITTED)
        LOGGER.info("Published %s (cksum %s)", self._label, new_package.cksum)
        return PublishOutcome(package=package, version=version, checksum=new_package.cksum)

    def _validate(self) -> tuple[NewPackage, Account]:
        request = self._request
        raw_name = _require(request.name, "X-Pkg-Name")
        raw_version = _require(request.version, "X-Pkg-Version")
        if request.content_length is None:
            raise InvalidRequest("missing header: Content-Length")
        features = _parse_features(request.features)
        deps = parse_dependency_headers(request.dependencies)

        if request.content_length > self._max_upload_size:
            raise PayloadTooLarge(self._max_upload_size)
        if _media_type(request.content_type) != TAR_CONTENT_TYPE:
            raise ValidationFailed(f"invalid content-type, expected {TAR_CONTENT_TYPE}")
        if _media_type(request.content_encoding) not in GZIP_ENCODINGS:
            raise ValidationFailed("invalid content-encoding, expected gzip")

        account = self._accounts.resolve(request.credential)

        name = normalize_name(raw_name)
        if not valid_name(name):
            raise ValidationFailed(f"invalid package name: `{raw_name}`")
        if not valid_version(raw_version):
            raise ValidationFailed(f"invalid version: `{raw_version}`")
        return NewPackage(name=name, vers=raw_version, deps=deps, features=features), account

    def _reserve(self, new_package: NewPackage, account: Account) -> Package:
        def _reserve_in(session: Session) -> Package:
            package = self._catalog.find_or_create_package(
                name=new_package.name,
                owner_id=account.id,
                session=session,
            )
            if package.user_id != account.id:
                raise OwnershipConflict(new_package.name)
            existing = self._catalog.find_version(
                package_id=package.id,
                num=new_package.vers,
                session=session,
            )
            if existing is not None:
                raise VersionAlreadyPublished(new_package.vers, new_package.name)
            return package

        return run_in_session(_reserve_in, session_factory=self._session_factory)

    def _insert_version(self, package: Package, new_package: NewPackage) -> Version:
        """Insert the version row and link every dependency, all or nothing."""

        def _insert_in(session: Session) -> Version:
            version = self._catalog.insert_version(
                package_id=package.id,
                num=new_package.vers,
                session=session,
            )
            targets = self._catalog.find_packages_by_name(
                names=[dep.name for dep in new_package.deps],
                session=session,
            )
            for dep in new_package.deps:
                target = targets.get(dep.name)
                if target is None:
                    raise UnknownDependency(dep.name)
                self._catalog.link_dependency(
                    version_id=version.id,
                    depends_on_id=target.id,
                    session=session,
                )
            return version

        return run_in_session(_insert_in, session_factory=self._session_factory)

    def _release(self, version: Version) -> None:
        """Drop the reserved version row so the number can be published again."""

        try:
            run_in_session(
                lambda session: self._catalog.remove_version(version_id=version.id, session=session),
                session_factory=self._session_factory,
            )
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Failed to release version row of %s: %s", self._label, exc)
            return
        LOGGER.info("Released version row of %s after failed publish", self._label)

    def _upload(self, path: str) -> str:
        request = self._request
        declared = request.content_length
        reader = ChecksumReader(request.body, min(declared, self._max_upload_size))
        try:
            status = self._blob_store.put(
                path,
                reader,
                content_length=declared,
                content_type=TAR_CONTENT_TYPE,
                content_encoding="gzip",
            )
        except PayloadTooLarge as exc:
            if declared < self._max_upload_size:
                raise ValidationFailed(
                    f"request body is longer than the declared Content-Length of {declared}"
                ) from exc
            raise
        except RegistryError:
            raise
        except Exception as exc:
            LOGGER.exception("Upload of %s failed", path)
            raise UploadFailed(f"upload of {path} failed") from exc
        if reader.exhausted and reader.bytes_read < declared:
            if status == STATUS_OK:
                BlobCompensation(self._blob_store, path).fire()
            raise ValidationFailed(
                f"request body has {reader.bytes_read} bytes, Content-Length declared {declared}"
            )
        if status != STATUS_OK:
            LOGGER.error("Blob store rejected %s with status %s", path, status)
            raise UploadFailed(f"blob store returned status {status} for {path}")
        return reader.digest().hex()


class PublishService:
    """Builds a :class:`PublishSaga` per request from shared collaborators."""

    def __init__(
        self,
        *,
        session_factory: SessionFactory | None = None,
        catalog: Optional[PackageCatalog] = None,
        accounts: Optional[AccountService] = None,
        blob_store: Optional[BlobStore] = None,
        index: Optional[PackageIndex] = None,
        max_upload_size: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._catalog = catalog or PackageCatalog()
        self._accounts = accounts or AccountService(session_factory=session_factory)
        self._blob_store = blob_store if blob_store is not None else build_blob_store()
        self._index = index if index is not None else build_package_index()
        self._max_upload_size = max_upload_size or get_settings().max_upload_size

    @property
    def accounts(self) -> AccountService:
        return self._accounts

    def new_saga(self, request: PublishRequest) -> PublishSaga:
        return PublishSaga(
            request,
            catalog=self._catalog,
            accounts=self._accounts,
            blob_store=self._blob_store,
            index=self._index,
            max_upload_size=self._max_upload_size,
            session_factory=self._session_factory,
        )

    def publish(self, request: PublishRequest) -> PublishOutcome:
        return self.new_saga(request).run()


__all__ = [
    "BlobCompensation",
    "PublishOutcome",
    "PublishSaga",
    "PublishService",
    "PublishState",
]
