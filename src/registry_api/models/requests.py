"""Request bodies accepted by the registry endpoints."""

from __future__ import annotations

from pydantic import BaseModel, StrictStr


class UpdatePackage(BaseModel):
    name: StrictStr


class UpdateRequest(BaseModel):
    package: UpdatePackage
