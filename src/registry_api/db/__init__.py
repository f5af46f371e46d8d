"""Database utilities exposed for the registry service."""

from .base import Base
from .session import (
    DATABASE_URL,
    SessionFactory,
    SessionLocal,
    engine,
    run_in_session,
)

__all__ = [
    "Base",
    "DATABASE_URL",
    "SessionFactory",
    "SessionLocal",
    "engine",
    "run_in_session",
]
