"""SQLAlchemy models for the registry catalog."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserRecord(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    login: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    api_token: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class PackageRecord(Base):
    __tablename__ = "packages"
    __table_args__ = (CheckConstraint("downloads >= 0", name="ck_packages_downloads"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id"),
        index=True,
    )
    downloads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    versions: Mapped[list["VersionRecord"]] = relationship(
        "VersionRecord",
        back_populates="package",
        order_by="VersionRecord.id",
    )


class VersionRecord(Base):
    __tablename__ = "versions"
    __table_args__ = (
        UniqueConstraint("package_id", "num", name="uq_versions_package_num"),
        CheckConstraint("downloads >= 0", name="ck_versions_downloads"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    package_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("packages.id"),
        index=True,
    )
    num: Mapped[str] = mapped_column(String(128))
    downloads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    package: Mapped[PackageRecord] = relationship("PackageRecord", back_populates="versions")


class VersionDependencyRecord(Base):
    __tablename__ = "version_dependencies"

    version_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("versions.id"),
        primary_key=True,
    )
    depends_on_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("packages.id"),
        primary_key=True,
        index=True,
    )


class MetadataRecord(Base):
    __tablename__ = "metadata"
    __table_args__ = (CheckConstraint("total_downloads >= 0", name="ck_metadata_downloads"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    total_downloads: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


__all__ = [
    "MetadataRecord",
    "PackageRecord",
    "UserRecord",
    "VersionDependencyRecord",
    "VersionRecord",
]
