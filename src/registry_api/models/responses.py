"""Response envelopes of the registry endpoints."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr

from .package import EncodablePackage, EncodableVersion


class PageMeta(BaseModel):
    total: StrictInt


class PackageListResponse(BaseModel):
    packages: List[EncodablePackage] = Field(default_factory=list)
    meta: PageMeta


class SummaryResponse(BaseModel):
    num_downloads: StrictInt
    num_packages: StrictInt
    new_packages: List[EncodablePackage] = Field(default_factory=list)
    most_downloaded: List[EncodablePackage] = Field(default_factory=list)
    just_updated: List[EncodablePackage] = Field(default_factory=list)


class PackageDetailResponse(BaseModel):
    package: EncodablePackage
    versions: List[EncodableVersion] = Field(default_factory=list)


class PackageResponse(BaseModel):
    package: EncodablePackage


class PublishResponse(BaseModel):
    ok: StrictBool = True
    package: EncodablePackage


class DownloadResponse(BaseModel):
    ok: StrictBool = True
    url: StrictStr
