"""Read-side queries: listings, summary, package detail and download accounting."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from registry_api.db import SessionFactory, run_in_session
from registry_api.domain.validation import normalize_name
from registry_api.errors import InvalidRequest
from registry_api.infra.package_index import PackageIndex, build_package_index
from registry_api.models import (
    EncodablePackage,
    EncodableVersion,
    PackageDetailResponse,
    PackageListResponse,
    PageMeta,
    SummaryResponse,
    encode_time,
)
from registry_api.repo.metadata import MetadataRepository
from registry_api.repo.packages import PackageRepository
from registry_api.repo.versions import VersionRepository

from .accounts import Account
from .catalog import Package, PackageCatalog, Version, package_from_record

LOGGER = logging.getLogger(__name__)

MAX_PER_PAGE = 100
DEFAULT_PER_PAGE = 10
SUMMARY_SIZE = 10


def download_path(name: str, num: str) -> str:
    return f"/download/{name}/{name}-{num}.tar.gz"


def encode_version(version: Version, package_name: str) -> EncodableVersion:
    return EncodableVersion(
        id=version.id,
        package=package_name,
        num=version.num,
        dl_path=download_path(package_name, version.num),
        created_at=encode_time(version.created_at),
        updated_at=encode_time(version.updated_at),
        downloads=version.downloads,
    )


def encode_package(package: Package, versions: Iterable[Version]) -> EncodablePackage:
    return EncodablePackage(
        id=package.name,
        name=package.name,
        versions=[version.id for version in versions],
        created_at=encode_time(package.created_at),
        updated_at=encode_time(package.updated_at),
        downloads=package.downloads,
    )


class PackageQueryService:
    """Listing, summary and detail queries over the catalog.

    Versions without an index entry are treated as unpublished and left out
    of every encoded package.
    """

    def __init__(
        self,
        *,
        session_factory: SessionFactory | None = None,
        catalog: Optional[PackageCatalog] = None,
        index: Optional[PackageIndex] = None,
        package_repo: Optional[PackageRepository] = None,
        version_repo: Optional[VersionRepository] = None,
        metadata_repo: Optional[MetadataRepository] = None,
    ) -> None:
        self._session_factory = session_factory
        self._packages = package_repo or PackageRepository()
        self._versions = version_repo or VersionRepository()
        self._metadata = metadata_repo or MetadataRepository()
        self._catalog = catalog or PackageCatalog(self._packages, self._versions)
        self._index = index if index is not None else build_package_index()

    @property
    def catalog(self) -> PackageCatalog:
        return self._catalog

    def _published(self, package: Package, versions: Sequence[Version]) -> list[Version]:
        if not versions:
            return []
        published = self._index.published_versions(package.name)
        return [version for version in versions if version.num in published]

    def bulk_encode(
        self,
        packages: Sequence[Package],
        *,
        session: Session,
    ) -> list[EncodablePackage]:
        grouped = self._catalog.list_versions_for(
            package_ids=[package.id for package in packages],
            session=session,
        )
        return [
            encode_package(package, self._published(package, grouped.get(package.id, [])))
            for package in packages
        ]

    def list_packages(
        self,
        *,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
        prefix: str | None = None,
        query: str | None = None,
    ) -> PackageListResponse:
        if per_page > MAX_PER_PAGE:
            raise InvalidRequest(f"cannot request more than {MAX_PER_PAGE} packages")
        if per_page < 1:
            raise InvalidRequest("per_page must be a positive integer")
        if page < 1:
            raise InvalidRequest("page must be a positive integer")
        offset = (page - 1) * per_page

        def _list(session: Session) -> PackageListResponse:
            records = self._packages.list_page(
                limit=per_page,
                offset=offset,
                prefix=prefix,
                query=query,
                session=session,
            )
            total = self._packages.count(prefix=prefix, query=query, session=session)
            packages = [package_from_record(record) for record in records]
            return PackageListResponse(
                packages=self.bulk_encode(packages, session=session),
                meta=PageMeta(total=total),
            )

        return run_in_session(_list, session_factory=self._session_factory)

    def summary(self) -> SummaryResponse:
        def _summary(session: Session) -> SummaryResponse:
            def top(column: str) -> list[EncodablePackage]:
                records = self._packages.top_by(column=column, limit=SUMMARY_SIZE, session=session)
                return self.bulk_encode(
                    [package_from_record(record) for record in records],
                    session=session,
                )

            return SummaryResponse(
                num_downloads=self._metadata.total_downloads(session=session),
                num_packages=self._packages.count(prefix=None, query=None, session=session),
                new_packages=top("created_at"),
                most_downloaded=top("downloads"),
                just_updated=top("updated_at"),
            )

        return run_in_session(_summary, session_factory=self._session_factory)

    def show(self, name: str) -> PackageDetailResponse:
        normalized = normalize_name(name)

        def _show(session: Session) -> PackageDetailResponse:
            package = self._catalog.find_package(name=normalized, session=session)
            versions = self._published(
                package,
                self._catalog.list_versions(package_id=package.id, session=session),
            )
            return PackageDetailResponse(
                package=encode_package(package, versions),
                versions=[encode_version(version, package.name) for version in versions],
            )

        return run_in_session(_show, session_factory=self._session_factory)

    def encode(self, name: str) -> EncodablePackage:
        return self.show(name).package

    def update(self, name: str, *, new_name: str, account: Account) -> EncodablePackage:
        """Accept a rename request without applying it."""

        current = self.encode(name)
        LOGGER.info(
            "Package %s: rename to %s requested by %s (not applied)",
            current.name,
            new_name,
            account.login,
        )
        return current

    def record_download(self, package_id: int, version_id: int) -> bool:
        """Bump the package, version and global download counters.

        Best effort: a store failure is logged and reported as ``False`` so the
        caller can still serve the download.
        """

        def _record(session: Session) -> None:
            self._packages.increment_downloads(package_id=package_id, session=session)
            self._versions.increment_downloads(version_id=version_id, session=session)
            self._metadata.increment_total_downloads(session=session)

        try:
            run_in_session(_record, session_factory=self._session_factory)
        except SQLAlchemyError as exc:
            LOGGER.warning(
                "Failed to record download of package %s version %s: %s",
                package_id,
                version_id,
                exc,
            )
            return False
        return True


__all__ = [
    "DEFAULT_PER_PAGE",
    "MAX_PER_PAGE",
    "PackageQueryService",
    "download_path",
    "encode_package",
    "encode_version",
]
