import hashlib
import io
import json

import pytest
from sqlalchemy import func, select

from registry_api.db import run_in_session
from registry_api.db.models import PackageRecord, VersionDependencyRecord, VersionRecord
from registry_api.errors import (
    IndexingFailed,
    InvalidRequest,
    OwnershipConflict,
    PayloadTooLarge,
    Unauthorized,
    UnknownDependency,
    UploadFailed,
    ValidationFailed,
    VersionAlreadyPublished,
)
from registry_api.infra.package_index import PackageIndexError
from registry_api.service.publish import BlobCompensation, PublishService, PublishState

from conftest import MAX_UPLOAD, OTHER_TOKEN, TARBALL

TEN_BYTES = b"\x1f\x8b0123456"


class _FailingIndex:
    def __init__(self, inner):
        self._inner = inner
        self.attempts = 0

    def register(self, entry):
        self.attempts += 1
        raise PackageIndexError("index service unavailable")

    def published_versions(self, name):
        return self._inner.published_versions(name)


class _RejectingBlobStore:
    def __init__(self, inner, status=503):
        self._inner = inner
        self._status = status

    def put(self, path, stream, **kwargs):
        return self._status

    def delete(self, path):
        self._inner.delete(path)

    def public_url(self, path):
        return self._inner.public_url(path)


class _UndeletableBlobStore:
    def __init__(self, inner):
        self._inner = inner

    def put(self, path, stream, **kwargs):
        return self._inner.put(path, stream, **kwargs)

    def delete(self, path):
        raise OSError("permission denied")

    def public_url(self, path):
        return self._inner.public_url(path)


def _service(session_factory, accounts, blob_store, index):
    return PublishService(
        session_factory=session_factory,
        accounts=accounts,
        blob_store=blob_store,
        index=index,
        max_upload_size=MAX_UPLOAD,
    )


def _version_count(session_factory):
    return run_in_session(
        lambda s: s.execute(select(func.count(VersionRecord.id))).scalar_one(),
        session_factory=session_factory,
    )


def test_publish_new_version_commits(publisher, make_request, blob_store, index, query, account):
    saga = publisher.new_saga(make_request("foo", "1.0.0", body=TEN_BYTES))

    outcome = saga.run()

    assert saga.state is PublishState.COMMITTED
    digest = hashlib.sha256(TEN_BYTES).hexdigest()
    assert outcome.checksum == digest
    assert blob_store.resolve("foo/foo-1.0.0.tar.gz").read_bytes() == TEN_BYTES
    entries = index.entries("foo")
    assert [(e["name"], e["vers"], e["cksum"]) for e in entries] == [("foo", "1.0.0", digest)]
    assert entries[0]["yanked"] is False
    assert [v.num for v in query.show("foo").versions] == ["1.0.0"]


def test_republishing_same_version_is_rejected_without_side_effects(
    publisher, make_request, blob_store, index, session_factory, account
):
    publisher.publish(make_request("foo", "1.0.0", body=TEN_BYTES))
    blob_path = blob_store.resolve("foo/foo-1.0.0.tar.gz")
    index_before = index.path_for("foo").read_text()

    saga = publisher.new_saga(make_request("foo", "1.0.0", body=b"\x1f\x8bdifferent"))
    with pytest.raises(VersionAlreadyPublished) as excinfo:
        saga.run()

    assert saga.state is PublishState.ABORTED
    assert "1.0.0" in excinfo.value.message and "foo" in excinfo.value.message
    assert blob_path.read_bytes() == TEN_BYTES
    assert index.path_for("foo").read_text() == index_before
    assert _version_count(session_factory) == 1


def test_index_failure_deletes_uploaded_blob(
    session_factory, accounts, blob_store, index, make_request, account
):
    failing = _FailingIndex(index)
    service = _service(session_factory, accounts, blob_store, failing)
    saga = service.new_saga(make_request("foo", "1.0.0", body=TEN_BYTES))

    with pytest.raises(IndexingFailed):
        saga.run()

    assert failing.attempts == 1
    assert saga.state is PublishState.ROLLED_BACK
    assert not blob_store.exists("foo/foo-1.0.0.tar.gz")
    assert index.entries("foo") == []
    assert _version_count(session_factory) == 0


def test_failed_compensation_is_logged_not_raised(
    session_factory, accounts, blob_store, index, make_request, account, caplog
):
    service = _service(
        session_factory,
        accounts,
        _UndeletableBlobStore(blob_store),
        _FailingIndex(index),
    )

    with caplog.at_level("WARNING"):
        with pytest.raises(IndexingFailed):
            service.publish(make_request("foo", "1.0.0"))

    assert "Failed to delete orphaned blob" in caplog.text
    assert blob_store.exists("foo/foo-1.0.0.tar.gz")


def test_upload_rejection_rolls_back_without_index_entry(
    session_factory, accounts, blob_store, index, make_request, query, account
):
    service = _service(session_factory, accounts, _RejectingBlobStore(blob_store), index)
    saga = service.new_saga(make_request("foo", "1.0.0"))

    with pytest.raises(UploadFailed) as excinfo:
        saga.run()

    assert saga.state is PublishState.ROLLED_BACK
    assert "503" in excinfo.value.message
    assert index.entries("foo") == []
    assert _version_count(session_factory) == 0
    assert query.show("foo").versions == []


def test_version_can_be_retried_after_failed_upload(
    session_factory, accounts, blob_store, index, make_request, query, account
):
    flaky = _service(session_factory, accounts, _RejectingBlobStore(blob_store), index)
    with pytest.raises(UploadFailed):
        flaky.publish(make_request("foo", "1.0.0"))

    service = _service(session_factory, accounts, blob_store, index)
    outcome = service.publish(make_request("foo", "1.0.0", body=TEN_BYTES))

    assert outcome.version.num == "1.0.0"
    assert [e["vers"] for e in index.entries("foo")] == ["1.0.0"]
    assert blob_store.resolve("foo/foo-1.0.0.tar.gz").read_bytes() == TEN_BYTES
    assert _version_count(session_factory) == 1
    assert [v.num for v in query.show("foo").versions] == ["1.0.0"]


def test_version_can_be_retried_after_failed_indexing(
    session_factory, accounts, blob_store, index, make_request, account
):
    failing = _service(session_factory, accounts, blob_store, _FailingIndex(index))
    with pytest.raises(IndexingFailed):
        failing.publish(make_request("foo", "1.0.0"))

    outcome = _service(session_factory, accounts, blob_store, index).publish(
        make_request("foo", "1.0.0")
    )

    assert outcome.version.num == "1.0.0"
    assert [e["vers"] for e in index.entries("foo")] == ["1.0.0"]


def test_body_larger_than_limit_fails_during_upload(publisher, make_request, blob_store, index, account):
    body = b"x" * (MAX_UPLOAD + 1)
    saga = publisher.new_saga(make_request("big", "1.0.0", body=body, content_length=MAX_UPLOAD))

    with pytest.raises(PayloadTooLarge):
        saga.run()

    assert saga.state is PublishState.ROLLED_BACK
    assert not blob_store.exists("big/big-1.0.0.tar.gz")
    assert index.entries("big") == []


def test_body_longer_than_declared_length_is_a_client_error(
    publisher, make_request, blob_store, index, session_factory, account
):
    saga = publisher.new_saga(make_request("foo", "1.0.0", body=b"\x1f\x8b" * 16, content_length=10))

    with pytest.raises(ValidationFailed) as excinfo:
        saga.run()

    assert not isinstance(excinfo.value, PayloadTooLarge)
    assert "Content-Length" in excinfo.value.message
    assert saga.state is PublishState.ROLLED_BACK
    assert not blob_store.exists("foo/foo-1.0.0.tar.gz")
    assert index.entries("foo") == []
    assert _version_count(session_factory) == 0


def test_body_shorter_than_declared_length_is_a_client_error(
    publisher, make_request, blob_store, index, session_factory, account
):
    saga = publisher.new_saga(make_request("foo", "1.0.0", body=TEN_BYTES, content_length=32))

    with pytest.raises(ValidationFailed) as excinfo:
        saga.run()

    assert excinfo.value.message == "request body has 10 bytes, Content-Length declared 32"
    assert saga.state is PublishState.ROLLED_BACK
    assert not blob_store.exists("foo/foo-1.0.0.tar.gz")
    assert index.entries("foo") == []
    assert _version_count(session_factory) == 0


def test_short_body_accepted_by_a_lenient_store_is_removed(
    session_factory, accounts, blob_store, index, make_request, account
):
    class _LenientStore:
        def put(self, path, stream, **kwargs):
            return blob_store.put(path, stream, **{**kwargs, "content_length": None})

        def delete(self, path):
            blob_store.delete(path)

        def public_url(self, path):
            return blob_store.public_url(path)

    service = _service(session_factory, accounts, _LenientStore(), index)

    with pytest.raises(ValidationFailed):
        service.publish(make_request("foo", "1.0.0", body=TEN_BYTES, content_length=32))

    assert not blob_store.exists("foo/foo-1.0.0.tar.gz")
    assert index.entries("foo") == []


def test_declared_length_over_limit_is_rejected_up_front(publisher, make_request, session_factory, account):
    saga = publisher.new_saga(make_request("big", "1.0.0", content_length=MAX_UPLOAD + 1))

    with pytest.raises(PayloadTooLarge) as excinfo:
        saga.run()

    assert saga.state is PublishState.ABORTED
    assert excinfo.value.message == f"max upload size is: {MAX_UPLOAD}"
    assert _version_count(session_factory) == 0


def test_unknown_dependency_leaves_no_trace(
    publisher, make_request, blob_store, index, session_factory, account
):
    publisher.publish(make_request("serde", "1.0.0"))

    saga = publisher.new_saga(
        make_request("app", "0.1.0", dependencies=("serde|^1.0|derive;missing-dep|*",))
    )
    with pytest.raises(UnknownDependency) as excinfo:
        saga.run()

    assert excinfo.value.dependency == "missing-dep"
    assert saga.state is PublishState.ABORTED
    assert _version_count(session_factory) == 1
    edges = run_in_session(
        lambda s: s.execute(select(func.count()).select_from(VersionDependencyRecord)).scalar_one(),
        session_factory=session_factory,
    )
    assert edges == 0
    assert not blob_store.exists("app/app-0.1.0.tar.gz")
    assert index.entries("app") == []


def test_dependencies_and_features_reach_the_index(
    publisher, make_request, index, session_factory, account
):
    publisher.publish(make_request("serde", "1.0.0"))
    publisher.publish(make_request("rand", "0.8.5"))

    outcome = publisher.publish(
        make_request(
            "app",
            "0.1.0",
            features=json.dumps({"default": ["std"], "std": []}),
            dependencies=("serde|^1.0|derive,std", "RAND"),
        )
    )

    entry = index.entries("app")[0]
    assert entry["features"] == {"default": ["std"], "std": []}
    assert entry["deps"] == [
        {"name": "serde", "req": "^1.0", "features": ["derive", "std"]},
        {"name": "rand", "req": "*", "features": []},
    ]
    edges = run_in_session(
        lambda s: s.execute(
            select(func.count())
            .select_from(VersionDependencyRecord)
            .where(VersionDependencyRecord.version_id == outcome.version.id)
        ).scalar_one(),
        session_factory=session_factory,
    )
    assert edges == 2


def test_other_owner_cannot_publish(publisher, make_request, session_factory, account, other_account):
    publisher.publish(make_request("foo", "1.0.0"))

    saga = publisher.new_saga(make_request("foo", "1.1.0", credential=OTHER_TOKEN))
    with pytest.raises(OwnershipConflict) as excinfo:
        saga.run()

    assert "foo" in excinfo.value.message
    assert saga.state is PublishState.ABORTED
    assert _version_count(session_factory) == 1


def test_failed_first_publish_leaves_empty_package_row(publisher, make_request, session_factory, account):
    with pytest.raises(UnknownDependency):
        publisher.publish(make_request("lonely", "1.0.0", dependencies=("ghost",)))

    names = run_in_session(
        lambda s: s.execute(select(PackageRecord.name)).scalars().all(),
        session_factory=session_factory,
    )
    assert names == ["lonely"]
    assert _version_count(session_factory) == 0


def test_bearer_credential_is_accepted(publisher, make_request, account):
    outcome = publisher.publish(make_request("foo", "1.0.0", credential="Bearer alice-token"))

    assert outcome.package.user_id == account.id


@pytest.mark.parametrize("credential", [None, "", "wrong-token", "Bearer nope"])
def test_unknown_credential_is_unauthorized(publisher, make_request, credential, account):
    saga = publisher.new_saga(make_request("foo", "1.0.0", credential=credential))

    with pytest.raises(Unauthorized):
        saga.run()

    assert saga.state is PublishState.ABORTED


@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"name": None}, InvalidRequest),
        ({"version": ""}, InvalidRequest),
        ({"features": "{not json"}, InvalidRequest),
        ({"features": '{"default": "std"}'}, InvalidRequest),
        ({"dependencies": ("a|b|c|d",)}, InvalidRequest),
        ({"dependencies": ("|^1.0",)}, InvalidRequest),
        ({"content_type": "application/zip"}, ValidationFailed),
        ({"content_encoding": "br"}, ValidationFailed),
        ({"content_encoding": None}, ValidationFailed),
        ({"name": "bad name!"}, ValidationFailed),
        ({"version": "1.0"}, ValidationFailed),
        ({"version": "01.0.0"}, ValidationFailed),
    ],
)
def test_invalid_metadata_is_rejected_before_persistence(
    publisher, make_request, session_factory, blob_store, overrides, error, account
):
    saga = publisher.new_saga(make_request(**{"name": "foo", "version": "1.0.0", **overrides}))

    with pytest.raises(error):
        saga.run()

    assert saga.state is PublishState.ABORTED
    assert run_in_session(
        lambda s: s.execute(select(func.count(PackageRecord.id))).scalar_one(),
        session_factory=session_factory,
    ) == 0
    assert not blob_store.exists("foo/foo-1.0.0.tar.gz")


def test_missing_content_length_is_invalid(publisher, make_request, account):
    request = make_request("foo", "1.0.0")
    request.content_length = None

    with pytest.raises(InvalidRequest) as excinfo:
        publisher.publish(request)

    assert "Content-Length" in excinfo.value.message


def test_x_gzip_and_parameterised_content_type_are_accepted(publisher, make_request, account):
    outcome = publisher.publish(
        make_request(
            "foo",
            "1.0.0-beta.1+build.5",
            content_type="application/x-tar; charset=binary",
            content_encoding="x-gzip",
        )
    )

    assert outcome.version.num == "1.0.0-beta.1+build.5"


def test_name_is_case_folded(publisher, make_request, blob_store, account):
    outcome = publisher.publish(make_request("MyCrate", "1.0.0"))

    assert outcome.package.name == "mycrate"
    assert blob_store.exists("mycrate/mycrate-1.0.0.tar.gz")


def test_blob_compensation_only_fires_while_armed(blob_store):
    for path in ("foo/foo-1.0.0.tar.gz", "bar/bar-1.0.0.tar.gz"):
        blob_store.put(
            path,
            io.BytesIO(TARBALL),
            content_length=None,
            content_type="application/x-tar",
            content_encoding="gzip",
        )

    with BlobCompensation(blob_store, "foo/foo-1.0.0.tar.gz") as guard:
        guard.disarm()
    with pytest.raises(RuntimeError):
        with BlobCompensation(blob_store, "bar/bar-1.0.0.tar.gz"):
            raise RuntimeError("later step failed")

    assert blob_store.exists("foo/foo-1.0.0.tar.gz")
    assert not blob_store.exists("bar/bar-1.0.0.tar.gz")

