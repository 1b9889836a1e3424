"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from findfish.config import AppConfig
from findfish.recording.records import RecordStore
from findfish.web.routes import create_router


def create_app(config: AppConfig, config_path: str | None = None) -> FastAPI:
    """Create the read-only status API over the video and record directories."""
    app = FastAPI(title="findfish", version="0.1.0")

    store = RecordStore(
        config.paths.record_dir,
        prefix=config.paths.record_prefix,
        filters=config.paths.record_filters,
    )
    app.include_router(create_router(config, store, config_path))
    return app
