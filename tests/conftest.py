import os
import tempfile
from pathlib import Path

# The engine module resolves its URL at import time; point it away from var/.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="registry-tests-"))
os.environ.setdefault("REGISTRY_DATABASE_URL", f"sqlite:///{(_TEST_ROOT / 'registry.db').as_posix()}")
os.environ.setdefault("REGISTRY_STORAGE_ROOT", str(_TEST_ROOT / "storage"))
os.environ.setdefault("REGISTRY_INDEX_ROOT", str(_TEST_ROOT / "index"))

import io  # noqa: E402
from typing import Callable, Iterator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from registry_api.apis import packages_api  # noqa: E402
from registry_api.db.base import Base  # noqa: E402
from registry_api.db.seed_data import seed_metadata  # noqa: E402
from registry_api.domain.publish import PublishRequest  # noqa: E402
from registry_api.infra.blob_store import LocalBlobStore  # noqa: E402
from registry_api.infra.package_index import FilePackageIndex  # noqa: E402
from registry_api.main import create_app  # noqa: E402
from registry_api.service.accounts import Account, AccountService  # noqa: E402
from registry_api.service.download import DownloadRedirector  # noqa: E402
from registry_api.service.listing import PackageQueryService  # noqa: E402
from registry_api.service.publish import PublishService  # noqa: E402

BLOB_HOST = "static.registry.test"
TOKEN = "alice-token"
OTHER_TOKEN = "bob-token"
MAX_UPLOAD = 1024
TARBALL = b"\x1f\x8b\x08\x00tarbal"


@pytest.fixture
def session_factory(tmp_path: Path) -> Iterator[sessionmaker]:
    engine = create_engine(
        f"sqlite:///{(tmp_path / 'registry.db').as_posix()}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        future=True,
        expire_on_commit=False,
    )
    seed_metadata(session_factory=factory)
    yield factory
    engine.dispose()


@pytest.fixture
def accounts(session_factory) -> AccountService:
    return AccountService(session_factory=session_factory)


@pytest.fixture
def account(accounts: AccountService) -> Account:
    return accounts.ensure_account(login="alice", api_token=TOKEN)


@pytest.fixture
def other_account(accounts: AccountService) -> Account:
    return accounts.ensure_account(login="bob", api_token=OTHER_TOKEN)


@pytest.fixture
def blob_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path / "storage", host=BLOB_HOST)


@pytest.fixture
def index(tmp_path: Path) -> FilePackageIndex:
    return FilePackageIndex(tmp_path / "index")


@pytest.fixture
def query(session_factory, index) -> PackageQueryService:
    return PackageQueryService(session_factory=session_factory, index=index)


@pytest.fixture
def publisher(session_factory, accounts, blob_store, index) -> PublishService:
    return PublishService(
        session_factory=session_factory,
        accounts=accounts,
        blob_store=blob_store,
        index=index,
        max_upload_size=MAX_UPLOAD,
    )


@pytest.fixture
def redirector(session_factory, query, blob_store, index) -> DownloadRedirector:
    return DownloadRedirector(
        session_factory=session_factory,
        query=query,
        blob_store=blob_store,
        index=index,
    )


@pytest.fixture
def make_request() -> Callable[..., PublishRequest]:
    def _make(
        name: str | None = "foo",
        version: str | None = "1.0.0",
        *,
        body: bytes = TARBALL,
        credential: str | None = TOKEN,
        features: str | None = None,
        dependencies: tuple[str, ...] = (),
        content_length: int | None = None,
        content_type: str | None = "application/x-tar",
        content_encoding: str | None = "gzip",
    ) -> PublishRequest:
        return PublishRequest(
            credential=credential,
            name=name,
            version=version,
            features=features,
            dependencies=list(dependencies),
            content_length=len(body) if content_length is None else content_length,
            content_type=content_type,
            content_encoding=content_encoding,
            body=io.BytesIO(body),
        )

    return _make


@pytest.fixture
def client(query, publisher, redirector) -> Iterator[TestClient]:
    app = create_app()
    app.dependency_overrides[packages_api.get_query_service] = lambda: query
    app.dependency_overrides[packages_api.get_publish_service] = lambda: publisher
    app.dependency_overrides[packages_api.get_download_redirector] = lambda: redirector
    with TestClient(app) as test_client:
        yield test_client
