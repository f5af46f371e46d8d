"""Encoded package and version records returned by the API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


def encode_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EncodablePackage(BaseModel):
    """A package with the ids of its published versions."""

    model_config = ConfigDict(populate_by_name=True)

    id: StrictStr
    name: StrictStr
    versions: List[StrictInt] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    downloads: StrictInt


class EncodableVersion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: StrictInt
    package: StrictStr
    num: StrictStr
    dl_path: StrictStr
    created_at: datetime
    updated_at: datetime
    downloads: StrictInt
