"""Credential extraction for registry endpoints."""

from typing import Optional

from fastapi import Security
from fastapi.security.api_key import APIKeyHeader

api_token_header = APIKeyHeader(
    name="Authorization",
    description="Registry API token, raw or as `Bearer <token>`.",
    auto_error=False,
)


def get_credential(credential: Optional[str] = Security(api_token_header)) -> Optional[str]:
    """Return the raw ``Authorization`` value; resolution happens in the account service."""

    return credential
