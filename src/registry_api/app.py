"""Runtime entrypoint that layers startup behaviour on the registry app."""

from __future__ import annotations

from typing import Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from registry_api import main as registry_main
from registry_api.config.settings import get_api_settings
from registry_api.db.migrations import upgrade_database
from registry_api.db.seed_data import seed_default_accounts, seed_metadata


def configure_cors(target: FastAPI, origins: Sequence[str]) -> None:
    if not origins:
        return
    target.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


app = registry_main.app
configure_cors(app, get_api_settings().cors_origins)


@app.on_event("startup")
def _startup() -> None:
    upgrade_database()
    seed_metadata()
    seed_default_accounts()
