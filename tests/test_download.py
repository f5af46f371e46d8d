import pytest

from registry_api.db import run_in_session
from registry_api.db.models import PackageRecord, VersionRecord
from registry_api.errors import InvalidRequest, NotFound
from registry_api.repo.metadata import MetadataRepository
from registry_api.service.catalog import PackageCatalog
from registry_api.service.download import split_filename

from conftest import BLOB_HOST


def _counters(session_factory, package_id, version_id):
    def _read(session):
        return (
            session.get(PackageRecord, package_id).downloads,
            session.get(VersionRecord, version_id).downloads,
            MetadataRepository().total_downloads(session=session),
        )

    return run_in_session(_read, session_factory=session_factory)


def test_download_redirects_to_blob_and_counts(
    publisher, make_request, redirector, session_factory, account
):
    published = publisher.publish(make_request("foo", "1.0.0"))

    target = redirector.resolve("foo", "foo-1.0.0.tar.gz")

    assert target.url == f"https://{BLOB_HOST}/pkg/foo/foo-1.0.0.tar.gz"
    assert target.counted is True
    assert (target.package_id, target.version_id) == (published.package.id, published.version.id)
    assert _counters(session_factory, published.package.id, published.version.id) == (1, 1, 1)


def test_download_counters_only_grow(publisher, make_request, redirector, session_factory, account):
    published = publisher.publish(make_request("foo", "1.0.0"))
    seen = []

    for _ in range(3):
        redirector.resolve("foo", "foo-1.0.0.tar.gz")
        seen.append(_counters(session_factory, published.package.id, published.version.id))

    assert seen == [(1, 1, 1), (2, 2, 2), (3, 3, 3)]


def test_download_name_is_case_insensitive(publisher, make_request, redirector, account):
    publisher.publish(make_request("foo", "1.0.0-RC1"))

    target = redirector.resolve("FOO", "Foo-1.0.0-RC1.tar.gz")

    assert target.url.endswith("/pkg/foo/foo-1.0.0-RC1.tar.gz")


@pytest.mark.parametrize(
    "filename",
    ["bar-1.0.0.tar.gz", "foo-1.0.0.zip", "foo1.0.0.tar.gz", "foo-.tar.gz"],
)
def test_filename_must_match_package(redirector, filename):
    with pytest.raises(InvalidRequest):
        redirector.resolve("foo", filename)


def test_split_filename_extracts_version_syntactically():
    assert split_filename("foo", "foo-not.a.version.tar.gz") == "not.a.version"
    assert split_filename("my-crate", "my-crate-0.2.0.tar.gz") == "0.2.0"


def test_unknown_package_or_version_is_not_found(publisher, make_request, redirector, account):
    publisher.publish(make_request("foo", "1.0.0"))

    with pytest.raises(NotFound):
        redirector.resolve("foo", "foo-2.0.0.tar.gz")
    with pytest.raises(NotFound):
        redirector.resolve("bar", "bar-1.0.0.tar.gz")


def test_unindexed_version_is_not_downloadable(redirector, session_factory, account):
    def _orphan(session):
        catalog = PackageCatalog()
        package = catalog.find_or_create_package(name="foo", owner_id=account.id, session=session)
        return catalog.insert_version(package_id=package.id, num="1.0.0", session=session)

    version = run_in_session(_orphan, session_factory=session_factory)

    with pytest.raises(NotFound):
        redirector.resolve("foo", "foo-1.0.0.tar.gz")
    assert _counters(session_factory, version.package_id, version.id) == (0, 0, 0)


def test_counter_failure_does_not_block_download(publisher, make_request, redirector, query, monkeypatch, account):
    publisher.publish(make_request("foo", "1.0.0"))
    monkeypatch.setattr(query, "record_download", lambda package_id, version_id: False)

    target = redirector.resolve("foo", "foo-1.0.0.tar.gz")

    assert target.counted is False
    assert target.url.endswith("/pkg/foo/foo-1.0.0.tar.gz")
