"""Repository for package rows."""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from registry_api.db.models import PackageRecord
from registry_api.repo.common import _now

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _name_filter(prefix: str | None, query: str | None) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if prefix:
        clauses.append(func.lower(PackageRecord.name).startswith(prefix.lower(), autoescape=True))
    if query:
        clauses.append(func.lower(PackageRecord.name).contains(query.lower(), autoescape=True))
    return clauses


class PackageRepository:
    def get(self, *, package_id: int, session: Session) -> PackageRecord | None:
        return session.get(PackageRecord, package_id)

    def get_by_name(self, *, name: str, session: Session) -> PackageRecord | None:
        stmt = select(PackageRecord).where(PackageRecord.name == name).limit(1)
        return session.execute(stmt).scalars().first()

    def list_by_names(self, *, names: Sequence[str], session: Session) -> list[PackageRecord]:
        if not names:
            return []
        stmt = select(PackageRecord).where(PackageRecord.name.in_(list(names)))
        return list(session.execute(stmt).scalars().all())

    def insert_if_absent(self, *, name: str, user_id: int, session: Session) -> bool:
        """Insert a package row unless one with ``name`` already exists.

        Uses ``INSERT ... ON CONFLICT DO NOTHING`` where the dialect supports
        it; elsewhere the insert runs in a savepoint and a uniqueness violation
        is treated as "already exists". Returns whether a row was created.
        """

        now = _now()
        values = {
            "name": name,
            "user_id": user_id,
            "downloads": 0,
            "created_at": now,
            "updated_at": now,
        }
        insert = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
        if insert is not None:
            stmt = insert(PackageRecord).values(**values).on_conflict_do_nothing(
                index_elements=["name"]
            )
            result = session.execute(stmt)
            return result.rowcount == 1
        try:
            with session.begin_nested():
                session.add(PackageRecord(**values))
        except IntegrityError:
            return False
        return True

    def list_page(
        self,
        *,
        limit: int,
        offset: int,
        prefix: str | None,
        query: str | None,
        session: Session,
    ) -> list[PackageRecord]:
        stmt = (
            select(PackageRecord)
            .where(*_name_filter(prefix, query))
            .order_by(PackageRecord.name, PackageRecord.id)
            .limit(limit)
            .offset(offset)
        )
        return list(session.execute(stmt).scalars().all())

    def count(self, *, prefix: str | None, query: str | None, session: Session) -> int:
        stmt = select(func.count(PackageRecord.id)).where(*_name_filter(prefix, query))
        return int(session.execute(stmt).scalar_one())

    def top_by(self, *, column: str, limit: int, session: Session) -> list[PackageRecord]:
        ordering = getattr(PackageRecord, column)
        stmt = (
            select(PackageRecord)
            .order_by(ordering.desc(), PackageRecord.id.asc())
            .limit(limit)
        )
        return list(session.execute(stmt).scalars().all())

    def increment_downloads(self, *, package_id: int, session: Session) -> None:
        session.execute(
            update(PackageRecord)
            .where(PackageRecord.id == package_id)
            .values(downloads=PackageRecord.downloads + 1)
        )

    def touch(self, *, package_id: int, session: Session) -> None:
        session.execute(
            update(PackageRecord)
            .where(PackageRecord.id == package_id)
            .values(updated_at=_now())
        )
