"""Inputs and intermediate records of a publish."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from registry_api.streams import ByteSource

from .dependency import DependencySpec


@dataclass
class PublishRequest:
    """Unvalidated upload metadata plus the tarball body, as received."""

    credential: str | None
    name: str | None
    version: str | None
    features: str | None
    dependencies: Sequence[str]
    content_length: int | None
    content_type: str | None
    content_encoding: str | None
    body: ByteSource


@dataclass
class NewPackage:
    """Validated publish metadata; ``cksum`` is filled in after upload."""

    name: str
    vers: str
    deps: list[DependencySpec] = field(default_factory=list)
    features: dict[str, list[str]] = field(default_factory=dict)
    cksum: str = ""

    def index_entry(self) -> dict[str, object]:
        return {
            "name": self.name,
            "vers": self.vers,
            "deps": [dep.to_dict() for dep in self.deps],
            "cksum": self.cksum,
            "features": {key: list(value) for key, value in self.features.items()},
            "yanked": False,
        }
