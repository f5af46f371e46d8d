"""Append-only package index collaborator."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, Protocol

from registry_api.config.settings import RegistrySettings, get_settings

LOGGER = logging.getLogger(__name__)


class PackageIndexError(Exception):
    """Base error for index registrations."""


class IndexConflictError(PackageIndexError):
    """Raised when a ``(name, version)`` pair is already registered."""


class PackageIndex(Protocol):
    def register(self, entry: Mapping[str, Any]) -> None: ...

    def published_versions(self, name: str) -> set[str]: ...


def index_relative_path(name: str) -> Path:
    """Shard ``name`` the way the cargo index does (``1/a``, ``3/a/abc``, ``ab/cd/abcd``)."""

    lowered = name.lower()
    if len(lowered) <= 2:
        return Path(str(len(lowered))) / lowered
    if len(lowered) == 3:
        return Path("3") / lowered[0] / lowered
    return Path(lowered[0:2]) / lowered[2:4] / lowered


class FilePackageIndex:
    """Keeps one file per package holding one JSON line per published version."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, name: str) -> Path:
        return self._root / index_relative_path(name)

    def entries(self, name: str) -> list[dict[str, Any]]:
        path = self.path_for(name)
        if not path.is_file():
            return []
        entries: list[dict[str, Any]] = []
        with path.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    LOGGER.warning("Skipping corrupt index line %s:%s", path, line_no)
        return entries

    def published_versions(self, name: str) -> set[str]:
        return {str(entry.get("vers")) for entry in self.entries(name) if entry.get("vers")}

    def register(self, entry: Mapping[str, Any]) -> None:
        name = str(entry["name"])
        version = str(entry["vers"])
        if version in self.published_versions(name):
            raise IndexConflictError(f"{name}@{version} is already present in the index")
        path = self.path_for(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(dict(entry), ensure_ascii=True, sort_keys=True, separators=(",", ":"))
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
        LOGGER.info("Registered %s@%s in the package index", name, version)


def build_package_index(settings: RegistrySettings | None = None) -> PackageIndex:
    settings = settings or get_settings()
    return FilePackageIndex(settings.index_root)


__all__ = [
    "FilePackageIndex",
    "IndexConflictError",
    "PackageIndex",
    "PackageIndexError",
    "build_package_index",
    "index_relative_path",
]
