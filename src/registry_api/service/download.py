"""Resolve download requests to public blob locations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from registry_api.db import SessionFactory, run_in_session
from registry_api.domain.validation import normalize_name
from registry_api.errors import InvalidRequest, NotFound
from registry_api.infra.blob_store import BlobStore, build_blob_store, package_blob_path
from registry_api.infra.package_index import PackageIndex, build_package_index
from registry_api.repo.versions import VersionRepository

from .listing import PackageQueryService

LOGGER = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.gz"


@dataclass(frozen=True)
class DownloadTarget:
    url: str
    package_id: int
    version_id: int
    counted: bool = True


def split_filename(name: str, filename: str) -> str:
    """Return the version part of ``<name>-<version>.tar.gz``."""

    prefix = f"{name}-"
    if (
        not filename.lower().startswith(prefix)
        or not filename.endswith(ARCHIVE_SUFFIX)
        or len(filename) <= len(prefix) + len(ARCHIVE_SUFFIX)
    ):
        raise InvalidRequest("download filename is not a tarball with the package name as a prefix")
    return filename[len(prefix):-len(ARCHIVE_SUFFIX)]


class DownloadRedirector:
    def __init__(
        self,
        *,
        session_factory: SessionFactory | None = None,
        query: Optional[PackageQueryService] = None,
        blob_store: Optional[BlobStore] = None,
        index: Optional[PackageIndex] = None,
        version_repo: Optional[VersionRepository] = None,
    ) -> None:
        self._session_factory = session_factory
        self._index = index if index is not None else build_package_index()
        self._query = query or PackageQueryService(session_factory=session_factory, index=self._index)
        self._blob_store = blob_store if blob_store is not None else build_blob_store()
        self._versions = version_repo or VersionRepository()

    def resolve(self, package_name: str, filename: str) -> DownloadTarget:
        name = normalize_name(package_name)
        num = split_filename(name, filename)

        def _lookup(session: Session) -> tuple[int, int] | None:
            return self._versions.find_for_download(package_name=name, num=num, session=session)

        found = run_in_session(_lookup, session_factory=self._session_factory)
        if found is None or num not in self._index.published_versions(name):
            raise NotFound("package or version not found")
        package_id, version_id = found

        counted = self._query.record_download(package_id, version_id)
        url = self._blob_store.public_url(package_blob_path(name, num))
        LOGGER.debug("Download of %s@%s redirected to %s", name, num, url)
        return DownloadTarget(url=url, package_id=package_id, version_id=version_id, counted=counted)


__all__ = ["ARCHIVE_SUFFIX", "DownloadRedirector", "DownloadTarget", "split_filename"]
