"""Seed the registry database with its singleton rows and a bootstrap account."""

from __future__ import annotations

import logging

from registry_api.config.settings import RegistrySettings, get_settings
from registry_api.repo.accounts import AccountRepository
from registry_api.repo.metadata import MetadataRepository

from .session import SessionFactory, SessionLocal

LOGGER = logging.getLogger(__name__)


def seed_metadata(*, session_factory: SessionFactory | None = None) -> None:
    factory = session_factory or SessionLocal
    with factory() as session:
        MetadataRepository().ensure_row(session=session)
        session.commit()


def seed_default_accounts(
    settings: RegistrySettings | None = None,
    *,
    session_factory: SessionFactory | None = None,
) -> None:
    settings = settings or get_settings()
    if not settings.bootstrap_user:
        return
    accounts = AccountRepository()
    factory = session_factory or SessionLocal
    with factory() as session:
        existing = accounts.get_by_login(login=settings.bootstrap_user, session=session)
        if existing:
            return
        record = accounts.create(
            login=settings.bootstrap_user,
            api_token=settings.bootstrap_api_token,
            session=session,
        )
        session.commit()
        if settings.bootstrap_api_token:
            LOGGER.info("Seeded bootstrap account %s", record.login)
        else:
            LOGGER.info("Seeded bootstrap account %s with token %s", record.login, record.api_token)
