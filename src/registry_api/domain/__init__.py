"""Domain rules shared by the catalog and the publish saga."""

from .dependency import DependencySpec, parse_dependency_headers
from .publish import NewPackage, PublishRequest
from .validation import normalize_name, valid_name, valid_version

__all__ = [
    "DependencySpec",
    "NewPackage",
    "PublishRequest",
    "normalize_name",
    "parse_dependency_headers",
    "valid_name",
    "valid_version",
]
