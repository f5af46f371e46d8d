"""FastAPI application factory for the package registry."""

from fastapi import FastAPI

from registry_api.apis.packages_api import router as PackagesApiRouter


def create_app() -> FastAPI:
    app = FastAPI(
        title="Package Registry API",
        description="Publish, list and download versioned package tarballs.",
        version="0.1.0",
    )
    app.include_router(PackagesApiRouter)
    return app


app = create_app()
