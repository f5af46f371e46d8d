"""Repository for version rows and their dependency edges."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from registry_api.db.models import PackageRecord, VersionDependencyRecord, VersionRecord
from registry_api.repo.common import _now

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class VersionRepository:
    def get_by_num(
        self,
        *,
        package_id: int,
        num: str,
        session: Session,
    ) -> VersionRecord | None:
        stmt = select(VersionRecord).where(
            VersionRecord.package_id == package_id,
            VersionRecord.num == num,
        )
        return session.execute(stmt).scalars().first()

    def insert_if_absent(self, *, package_id: int, num: str, session: Session) -> VersionRecord | None:
        """Insert a version row unless ``(package_id, num)`` is taken.

        Returns the new row, or ``None`` when the pair already exists. Any
        other integrity violation, such as an unknown ``package_id``, is
        raised unchanged.
        """

        now = _now()
        values = {
            "package_id": package_id,
            "num": num,
            "downloads": 0,
            "created_at": now,
            "updated_at": now,
        }
        insert = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
        if insert is not None:
            stmt = insert(VersionRecord).values(**values).on_conflict_do_nothing(
                index_elements=["package_id", "num"]
            )
            if session.execute(stmt).rowcount != 1:
                return None
            return self.get_by_num(package_id=package_id, num=num, session=session)
        if self.get_by_num(package_id=package_id, num=num, session=session) is not None:
            return None
        record = VersionRecord(**values)
        session.add(record)
        session.flush()
        return record

    def delete(self, *, version_id: int, session: Session) -> None:
        session.execute(
            delete(VersionDependencyRecord).where(VersionDependencyRecord.version_id == version_id)
        )
        session.execute(delete(VersionRecord).where(VersionRecord.id == version_id))

    def link_dependency(self, *, version_id: int, depends_on_id: int, session: Session) -> None:
        existing = session.get(VersionDependencyRecord, (version_id, depends_on_id))
        if existing is None:
            session.add(VersionDependencyRecord(version_id=version_id, depends_on_id=depends_on_id))
            session.flush()

    def list_dependencies(self, *, version_id: int, session: Session) -> list[int]:
        stmt = select(VersionDependencyRecord.depends_on_id).where(
            VersionDependencyRecord.version_id == version_id
        )
        return list(session.execute(stmt).scalars().all())

    def list_by_package(self, *, package_id: int, session: Session) -> list[VersionRecord]:
        stmt = (
            select(VersionRecord)
            .where(VersionRecord.package_id == package_id)
            .order_by(VersionRecord.id)
        )
        return list(session.execute(stmt).scalars().all())

    def list_by_packages(
        self,
        *,
        package_ids: Sequence[int],
        session: Session,
    ) -> list[VersionRecord]:
        if not package_ids:
            return []
        stmt = (
            select(VersionRecord)
            .where(VersionRecord.package_id.in_(list(package_ids)))
            .order_by(VersionRecord.id)
        )
        return list(session.execute(stmt).scalars().all())

    def find_for_download(
        self,
        *,
        package_name: str,
        num: str,
        session: Session,
    ) -> tuple[int, int] | None:
        stmt = (
            select(PackageRecord.id, VersionRecord.id)
            .join(VersionRecord, VersionRecord.package_id == PackageRecord.id)
            .where(PackageRecord.name == package_name, VersionRecord.num == num)
            .limit(1)
        )
        row = session.execute(stmt).first()
        if row is None:
            return None
        return int(row[0]), int(row[1])

    def increment_downloads(self, *, version_id: int, session: Session) -> None:
        session.execute(
            update(VersionRecord)
            .where(VersionRecord.id == version_id)
            .values(downloads=VersionRecord.downloads + 1)
        )
