"""Registry services: catalog, queries, publish saga and downloads."""

from .accounts import Account, AccountService
from .catalog import Package, PackageCatalog, Version
from .download import DownloadRedirector, DownloadTarget
from .listing import PackageQueryService
from .publish import BlobCompensation, PublishOutcome, PublishSaga, PublishService, PublishState

__all__ = [
    "Account",
    "AccountService",
    "BlobCompensation",
    "DownloadRedirector",
    "DownloadTarget",
    "Package",
    "PackageCatalog",
    "PackageQueryService",
    "PublishOutcome",
    "PublishSaga",
    "PublishService",
    "PublishState",
    "Version",
]
