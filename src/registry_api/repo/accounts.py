from __future__ import annotations

from secrets import token_hex

from sqlalchemy import select
from sqlalchemy.orm import Session

from registry_api.db.models import UserRecord
from registry_api.repo.common import _now


class AccountRepository:
    def get_by_login(self, *, login: str, session: Session) -> UserRecord | None:
        stmt = select(UserRecord).where(UserRecord.login == login)
        return session.execute(stmt).scalars().first()

    def find_by_api_token(self, *, token: str, session: Session) -> UserRecord | None:
        if not token:
            return None
        stmt = select(UserRecord).where(UserRecord.api_token == token)
        return session.execute(stmt).scalars().first()

    def create(self, *, login: str, api_token: str | None, session: Session) -> UserRecord:
        record = UserRecord(
            login=login,
            api_token=api_token or token_hex(16),
            created_at=_now(),
        )
        session.add(record)
        session.flush()
        return record
