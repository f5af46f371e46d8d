"""Credential resolution and bootstrap accounts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from registry_api.db import SessionFactory, run_in_session
from registry_api.errors import Unauthorized
from registry_api.repo.accounts import AccountRepository

LOGGER = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class Account:
    id: int
    login: str


def extract_token(credential: str | None) -> str:
    """Strip an optional ``Bearer`` scheme from an ``Authorization`` value."""

    if not credential:
        return ""
    token = credential.strip()
    if token.lower().startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):].strip()
    return token


class AccountService:
    def __init__(
        self,
        *,
        session_factory: SessionFactory | None = None,
        account_repo: Optional[AccountRepository] = None,
    ) -> None:
        self._session_factory = session_factory
        self._accounts = account_repo or AccountRepository()

    def resolve(self, credential: str | None, *, session: Session | None = None) -> Account:
        token = extract_token(credential)

        def _resolve(session: Session) -> Account:
            record = self._accounts.find_by_api_token(token=token, session=session)
            if record is None:
                raise Unauthorized("invalid or unknown auth token supplied")
            return Account(id=record.id, login=record.login)

        if session is not None:
            return _resolve(session)
        return run_in_session(_resolve, session_factory=self._session_factory)

    def ensure_account(self, *, login: str, api_token: str | None) -> Account:
        """Create ``login`` unless it exists; returns the stored account."""

        def _ensure(session: Session) -> Account:
            record = self._accounts.get_by_login(login=login, session=session)
            if record is None:
                record = self._accounts.create(login=login, api_token=api_token, session=session)
                LOGGER.info("Seeded account %s", login)
            return Account(id=record.id, login=record.login)

        return run_in_session(_ensure, session_factory=self._session_factory)


__all__ = ["Account", "AccountService", "extract_token"]
