"""Repository layer for data access."""

from .accounts import AccountRepository
from .metadata import MetadataRepository
from .packages import PackageRepository
from .versions import VersionRepository

__all__ = [
    "AccountRepository",
    "MetadataRepository",
    "PackageRepository",
    "VersionRepository",
]
