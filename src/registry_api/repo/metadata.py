"""Repository for registry-wide counters."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from registry_api.db.models import MetadataRecord

METADATA_ROW_ID = 1


class MetadataRepository:
    def ensure_row(self, *, session: Session) -> MetadataRecord:
        record = session.get(MetadataRecord, METADATA_ROW_ID)
        if record is None:
            record = MetadataRecord(id=METADATA_ROW_ID, total_downloads=0)
            session.add(record)
            session.flush()
        return record

    def total_downloads(self, *, session: Session) -> int:
        stmt = select(MetadataRecord.total_downloads).where(MetadataRecord.id == METADATA_ROW_ID)
        value = session.execute(stmt).scalar_one_or_none()
        return int(value or 0)

    def increment_total_downloads(self, *, session: Session) -> None:
        result = session.execute(
            update(MetadataRecord)
            .where(MetadataRecord.id == METADATA_ROW_ID)
            .values(total_downloads=MetadataRecord.total_downloads + 1)
        )
        if result.rowcount == 0:
            self.ensure_row(session=session).total_downloads += 1
