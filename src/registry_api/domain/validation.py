"""Name and version syntax rules."""

from __future__ import annotations

import re

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)"
    r"(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)


def normalize_name(name: str) -> str:
    return name.lower()


def valid_name(name: str) -> bool:
    if not name:
        return False
    return all(ch.isalnum() or ch in "_-" for ch in name)


def valid_version(version: str) -> bool:
    return bool(SEMVER_RE.match(version))
