"""Registry routes: listing, summary, package detail, publish and download."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Path, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from pydantic import StrictStr
from typing_extensions import Annotated

from registry_api.domain.publish import PublishRequest
from registry_api.errors import RegistryError
from registry_api.http.body import RequestBodyReader
from registry_api.http.errors import registry_http_error
from registry_api.models import (
    DownloadResponse,
    Error,
    PackageDetailResponse,
    PackageListResponse,
    PackageResponse,
    PublishResponse,
    SummaryResponse,
    UpdateRequest,
)
from registry_api.security_api import get_credential
from registry_api.service.download import DownloadRedirector
from registry_api.service.listing import DEFAULT_PER_PAGE, PackageQueryService
from registry_api.service.publish import PublishService

LOGGER = logging.getLogger(__name__)

router = APIRouter()

_query_service: PackageQueryService | None = None
_publish_service: PublishService | None = None
_download_redirector: DownloadRedirector | None = None


def get_query_service() -> PackageQueryService:
    global _query_service
    if _query_service is None:
        _query_service = PackageQueryService()
    return _query_service


def get_publish_service() -> PublishService:
    global _publish_service
    if _publish_service is None:
        _publish_service = PublishService()
    return _publish_service


def get_download_redirector() -> DownloadRedirector:
    global _download_redirector
    if _download_redirector is None:
        _download_redirector = DownloadRedirector(query=get_query_service())
    return _download_redirector


def _prefers_json(accept: str | None) -> bool:
    return bool(accept) and "application/json" in accept.lower()


_ERROR_RESPONSES = {
    400: {"model": Error, "description": "Bad Request"},
    401: {"model": Error, "description": "Unauthorized"},
    403: {"model": Error, "description": "Forbidden"},
    404: {"model": Error, "description": "Not Found"},
    409: {"model": Error, "description": "Conflict"},
    413: {"model": Error, "description": "Payload Too Large"},
}


@router.get(
    "/api/v1/packages",
    responses={200: {"model": PackageListResponse, "description": "OK"}, **_ERROR_RESPONSES},
    tags=["Packages"],
    summary="List packages",
)
async def list_packages(
    page: Annotated[int, Query(description="1-based page index")] = 1,
    per_page: Annotated[int, Query(description="Page size (at most 100)")] = DEFAULT_PER_PAGE,
    letter: Annotated[Optional[StrictStr], Query(description="Name prefix filter")] = None,
    q: Annotated[Optional[StrictStr], Query(description="Name substring search")] = None,
    query: PackageQueryService = Depends(get_query_service),
) -> PackageListResponse:
    try:
        return await run_in_threadpool(
            query.list_packages,
            page=page,
            per_page=per_page,
            prefix=letter,
            query=q,
        )
    except RegistryError as exc:
        raise registry_http_error(exc) from exc


@router.get(
    "/api/v1/summary",
    responses={200: {"model": SummaryResponse, "description": "OK"}},
    tags=["Packages"],
    summary="Registry summary",
)
async def get_summary(
    query: PackageQueryService = Depends(get_query_service),
) -> SummaryResponse:
    try:
        return await run_in_threadpool(query.summary)
    except RegistryError as exc:
        raise registry_http_error(exc) from exc


@router.put(
    "/api/v1/packages/new",
    responses={200: {"model": PublishResponse, "description": "Published"}, **_ERROR_RESPONSES},
    tags=["Packages"],
    summary="Publish a package version",
)
async def publish_package(
    request: Request,
    credential: Optional[str] = Depends(get_credential),
    x_pkg_name: Annotated[Optional[str], Header(alias="X-Pkg-Name")] = None,
    x_pkg_version: Annotated[Optional[str], Header(alias="X-Pkg-Version")] = None,
    x_pkg_feature: Annotated[Optional[str], Header(alias="X-Pkg-Feature")] = None,
    x_pkg_dep: Annotated[Optional[List[str]], Header(alias="X-Pkg-Dep")] = None,
    content_length: Annotated[Optional[int], Header(alias="Content-Length")] = None,
    content_type: Annotated[Optional[str], Header(alias="Content-Type")] = None,
    content_encoding: Annotated[Optional[str], Header(alias="Content-Encoding")] = None,
    publisher: PublishService = Depends(get_publish_service),
    query: PackageQueryService = Depends(get_query_service),
) -> PublishResponse:
    publish_request = PublishRequest(
        credential=credential,
        name=x_pkg_name,
        version=x_pkg_version,
        features=x_pkg_feature,
        dependencies=x_pkg_dep or [],
        content_length=content_length,
        content_type=content_type,
        content_encoding=content_encoding,
        body=RequestBodyReader.from_request(request),
    )
    try:
        outcome = await run_in_threadpool(publisher.publish, publish_request)
        package = await run_in_threadpool(query.encode, outcome.package.name)
    except RegistryError as exc:
        raise registry_http_error(exc) from exc
    return PublishResponse(ok=True, package=package)


@router.get(
    "/api/v1/packages/{package_id}",
    responses={200: {"model": PackageDetailResponse, "description": "OK"}, **_ERROR_RESPONSES},
    tags=["Packages"],
    summary="Show a package and its published versions",
)
async def get_package(
    package_id: Annotated[StrictStr, Path(description="Package name")],
    query: PackageQueryService = Depends(get_query_service),
) -> PackageDetailResponse:
    try:
        return await run_in_threadpool(query.show, package_id)
    except RegistryError as exc:
        raise registry_http_error(exc) from exc


@router.put(
    "/api/v1/packages/{package_id}",
    responses={200: {"model": PackageResponse, "description": "OK"}, **_ERROR_RESPONSES},
    tags=["Packages"],
    summary="Request a package update",
)
async def update_package(
    package_id: Annotated[StrictStr, Path(description="Package name")],
    update_request: UpdateRequest,
    credential: Optional[str] = Depends(get_credential),
    publisher: PublishService = Depends(get_publish_service),
    query: PackageQueryService = Depends(get_query_service),
) -> PackageResponse:
    try:
        account = await run_in_threadpool(publisher.accounts.resolve, credential)
        package = await run_in_threadpool(
            query.update,
            package_id,
            new_name=update_request.package.name,
            account=account,
        )
    except RegistryError as exc:
        raise registry_http_error(exc) from exc
    return PackageResponse(package=package)


@router.get(
    "/download/{package_id}/{filename}",
    responses={
        200: {"model": DownloadResponse, "description": "Blob location"},
        302: {"description": "Redirect to the blob location"},
        **_ERROR_RESPONSES,
    },
    tags=["Downloads"],
    summary="Download a package tarball",
    response_model=None,
)
async def download_package(
    package_id: Annotated[StrictStr, Path(description="Package name")],
    filename: Annotated[StrictStr, Path(description="<name>-<version>.tar.gz")],
    accept: Annotated[Optional[str], Header(alias="Accept")] = None,
    redirector: DownloadRedirector = Depends(get_download_redirector),
) -> DownloadResponse | RedirectResponse:
    try:
        target = await run_in_threadpool(redirector.resolve, package_id, filename)
    except RegistryError as exc:
        raise registry_http_error(exc) from exc
    if _prefers_json(accept):
        return DownloadResponse(ok=True, url=target.url)
    return RedirectResponse(target.url, status_code=302)
