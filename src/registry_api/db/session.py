"""Database session and engine helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Callable, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import Session, sessionmaker

from registry_api.config.settings import PROJECT_ROOT, get_settings

from .base import Base
from . import models  # noqa: F401  # ensure models are imported for metadata

DEFAULT_DB_PATH = PROJECT_ROOT / "var" / "data" / "registry.db"

T = TypeVar("T")
SessionFactory = Callable[[], Session]


def _resolve_database_url() -> str:
    raw_url = get_settings().database_url
    if not raw_url:
        DEFAULT_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{DEFAULT_DB_PATH.as_posix()}"

    url: URL = make_url(raw_url)
    if url.drivername.startswith("sqlite") and url.database:
        db_path = Path(url.database)
        if not db_path.is_absolute():
            db_path = PROJECT_ROOT / db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        url = url.set(database=str(db_path))
    return url.render_as_string(hide_password=False)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


DATABASE_URL = _resolve_database_url()

_SQLITE_CONNECT_ARGS: dict[str, object] = (
    {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    pool_pre_ping=True,
    connect_args=_SQLITE_CONNECT_ARGS,
)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    future=True,
    expire_on_commit=False,
)


def run_in_session(
    fn: Callable[[Session], T],
    *,
    session_factory: SessionFactory | None = None,
) -> T:
    """Run ``fn`` inside one transaction; commit on success, roll back on any error."""

    factory = session_factory or SessionLocal
    with factory() as session:
        try:
            result = fn(session)
            session.commit()
        except Exception:
            session.rollback()
            raise
        return result


__all__ = [
    "Base",
    "DATABASE_URL",
    "SessionFactory",
    "SessionLocal",
    "engine",
    "run_in_session",
]
