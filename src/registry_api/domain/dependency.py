"""Dependency declarations carried by an upload."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from registry_api.errors import InvalidRequest

from .validation import normalize_name


@dataclass(frozen=True)
class DependencySpec:
    """A requested ``(name, version requirement, features)`` triple.

    The wire form is ``name|req|feat1,feat2``; the requirement defaults to
    ``*`` and the feature list to empty.
    """

    name: str
    req: str = "*"
    features: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, raw: str) -> "DependencySpec":
        parts = [part.strip() for part in raw.strip().split("|")]
        if len(parts) > 3 or not parts[0]:
            raise InvalidRequest(f"malformed dependency: `{raw.strip()}`")
        name = normalize_name(parts[0])
        req = parts[1] if len(parts) > 1 and parts[1] else "*"
        features: tuple[str, ...] = ()
        if len(parts) > 2 and parts[2]:
            features = tuple(item.strip() for item in parts[2].split(",") if item.strip())
        return cls(name=name, req=req, features=features)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "req": self.req,
            "features": list(self.features),
        }


def parse_dependency_headers(values: Iterable[str]) -> list[DependencySpec]:
    """Parse every ``;``-separated dependency of every dependency header."""

    deps: list[DependencySpec] = []
    for value in values:
        for item in value.split(";"):
            if item.strip():
                deps.append(DependencySpec.parse(item))
    return deps
