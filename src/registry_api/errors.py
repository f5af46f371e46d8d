"""Typed failures raised by the registry core."""

from __future__ import annotations


class RegistryError(Exception):
    """Base error for registry operations."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(RegistryError):
    """Raised for malformed pagination, headers or request metadata."""

    code = "invalid_request"


class ValidationFailed(RegistryError):
    """Raised when upload metadata breaks a naming, version or content rule."""

    code = "validation_failed"


class PayloadTooLarge(ValidationFailed):
    """Raised when an upload exceeds the configured maximum size."""

    code = "payload_too_large"

    def __init__(self, limit: int) -> None:
        super().__init__(f"max upload size is: {limit}")
        self.limit = limit


class Unauthorized(RegistryError):
    """Raised when a credential does not resolve to a known account."""

    code = "unauthorized"


class NotFound(RegistryError):
    """Raised when a package or version is unknown."""

    code = "not_found"


class Conflict(RegistryError):
    """Raised when a uniqueness rule of the catalog would be broken."""

    code = "conflict"


class VersionAlreadyPublished(Conflict):
    """Raised when a version number is published twice for one package."""

    code = "version_already_published"

    def __init__(self, version: str, name: str | None = None) -> None:
        label = f"package version `{version}`"
        if name:
            label = f"{label} of `{name}`"
        super().__init__(f"{label} is already uploaded")
        self.name = name
        self.version = version


class OwnershipConflict(RegistryError):
    """Raised when a package name is owned by another account."""

    code = "ownership_conflict"

    def __init__(self, name: str) -> None:
        super().__init__(f"package name `{name}` has already been claimed by another user")
        self.name = name


class UnknownDependency(RegistryError):
    """Raised when a declared dependency does not name an existing package."""

    code = "unknown_dependency"

    def __init__(self, dependency: str) -> None:
        super().__init__(f"no known package named `{dependency}`")
        self.dependency = dependency


class InternalError(RegistryError):
    """Raised for failures of a backing store or remote service."""

    code = "internal_error"
    public_message = "internal server error"


class UploadFailed(InternalError):
    """Raised when the blob store rejects a tarball upload."""

    code = "upload_failed"


class IndexingFailed(InternalError):
    """Raised when the package index rejects a registration."""

    code = "indexing_failed"


__all__ = [
    "Conflict",
    "IndexingFailed",
    "InternalError",
    "InvalidRequest",
    "NotFound",
    "OwnershipConflict",
    "PayloadTooLarge",
    "RegistryError",
    "Unauthorized",
    "UnknownDependency",
    "UploadFailed",
    "ValidationFailed",
    "VersionAlreadyPublished",
]
