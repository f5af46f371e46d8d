"""Pydantic models of the registry API."""

from .error import Error
from .package import EncodablePackage, EncodableVersion, encode_time
from .requests import UpdatePackage, UpdateRequest
from .responses import (
    DownloadResponse,
    PackageDetailResponse,
    PackageListResponse,
    PackageResponse,
    PageMeta,
    PublishResponse,
    SummaryResponse,
)

__all__ = [
    "DownloadResponse",
    "EncodablePackage",
    "EncodableVersion",
    "Error",
    "PackageDetailResponse",
    "PackageListResponse",
    "PackageResponse",
    "PageMeta",
    "PublishResponse",
    "SummaryResponse",
    "UpdatePackage",
    "UpdateRequest",
    "encode_time",
]
