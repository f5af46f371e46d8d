"""Package and version catalog backed by the relational store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from registry_api.db.models import PackageRecord, VersionRecord
from registry_api.errors import InternalError, NotFound, VersionAlreadyPublished
from registry_api.repo.common import as_utc
from registry_api.repo.packages import PackageRepository
from registry_api.repo.versions import VersionRepository

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Package:
    id: int
    name: str
    user_id: int
    downloads: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class Version:
    id: int
    package_id: int
    num: str
    downloads: int
    created_at: datetime
    updated_at: datetime


def package_from_record(record: PackageRecord) -> Package:
    return Package(
        id=record.id,
        name=record.name,
        user_id=record.user_id,
        downloads=record.downloads,
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
    )


def version_from_record(record: VersionRecord) -> Version:
    return Version(
        id=record.id,
        package_id=record.package_id,
        num=record.num,
        downloads=record.downloads,
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
    )


class PackageCatalog:
    """Catalog operations over packages, versions and dependency edges.

    Every operation runs on the caller's session so that several of them can
    share one transaction (the publish saga links a version and its
    dependencies atomically).
    """

    def __init__(
        self,
        package_repo: Optional[PackageRepository] = None,
        version_repo: Optional[VersionRepository] = None,
    ) -> None:
        self._packages = package_repo or PackageRepository()
        self._versions = version_repo or VersionRepository()

    def find_package(
        self,
        *,
        package_id: int | None = None,
        name: str | None = None,
        session: Session,
    ) -> Package:
        if package_id is not None:
            record = self._packages.get(package_id=package_id, session=session)
        elif name is not None:
            record = self._packages.get_by_name(name=name, session=session)
        else:
            raise ValueError("find_package requires package_id or name")
        if record is None:
            raise NotFound(f"package `{name if name is not None else package_id}` not found")
        return package_from_record(record)

    def find_packages_by_name(self, *, names: list[str], session: Session) -> dict[str, Package]:
        records = self._packages.list_by_names(names=names, session=session)
        return {record.name: package_from_record(record) for record in records}

    def find_or_create_package(self, *, name: str, owner_id: int, session: Session) -> Package:
        """Return the package called ``name``, creating it for ``owner_id`` if absent.

        An existing row is returned untouched even when its owner differs from
        ``owner_id``; callers decide what an ownership mismatch means. Losing a
        concurrent first-publish race ends in a read of the winner's row.
        """

        created = self._packages.insert_if_absent(name=name, user_id=owner_id, session=session)
        record = self._packages.get_by_name(name=name, session=session)
        if record is None:
            raise InternalError(f"package row for `{name}` missing after insert")
        if created:
            LOGGER.info("Created package %s for user %s", name, owner_id)
        return package_from_record(record)

    def find_version(self, *, package_id: int, num: str, session: Session) -> Version | None:
        record = self._versions.get_by_num(package_id=package_id, num=num, session=session)
        return version_from_record(record) if record else None

    def insert_version(self, *, package_id: int, num: str, session: Session) -> Version:
        try:
            record = self._versions.insert_if_absent(package_id=package_id, num=num, session=session)
        except IntegrityError as exc:
            raise InternalError(f"version {num} of package {package_id} rejected: {exc.orig}") from exc
        if record is None:
            raise VersionAlreadyPublished(num)
        self._packages.touch(package_id=package_id, session=session)
        return version_from_record(record)

    def remove_version(self, *, version_id: int, session: Session) -> None:
        """Drop a version row and its dependency edges."""

        self._versions.delete(version_id=version_id, session=session)

    def link_dependency(self, *, version_id: int, depends_on_id: int, session: Session) -> None:
        self._versions.link_dependency(
            version_id=version_id,
            depends_on_id=depends_on_id,
            session=session,
        )

    def list_versions(self, *, package_id: int, session: Session) -> list[Version]:
        records = self._versions.list_by_package(package_id=package_id, session=session)
        return [version_from_record(record) for record in records]

    def list_versions_for(
        self,
        *,
        package_ids: list[int],
        session: Session,
    ) -> dict[int, list[Version]]:
        grouped: dict[int, list[Version]] = {package_id: [] for package_id in package_ids}
        for record in self._versions.list_by_packages(package_ids=package_ids, session=session):
            grouped.setdefault(record.package_id, []).append(version_from_record(record))
        return grouped


__all__ = [
    "Package",
    "PackageCatalog",
    "Version",
    "package_from_record",
    "version_from_record",
]
