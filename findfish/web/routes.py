"""HTTP routes: batch status, emitted records, and settings."""

from __future__ import annotations

import os

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from findfish.config import AppConfig, save_config_values
from findfish.intake.discovery import list_files
from findfish.intake.pairing import build_work_items
from findfish.recording.records import RecordStore

SETTINGS_SECTIONS = ("activity", "marker", "scheduler")


def _cast(current_value, new_value):
    """Cast new_value to the same type as the existing config attribute."""
    if isinstance(current_value, bool):
        return new_value in (True, "true", "1", "on", 1)
    elif isinstance(current_value, int):
        return int(float(new_value))
    elif isinstance(current_value, float):
        return float(new_value)
    return new_value


def _typed_dict(config_obj, body: dict) -> dict:
    """Return a dict of values from body, cast to match config_obj field types."""
    result = {}
    for key, value in body.items():
        if hasattr(config_obj, key):
            result[key] = _cast(getattr(config_obj, key), value)
    return result


def create_router(config: AppConfig, store: RecordStore,
                  config_path: str | None = None) -> APIRouter:
    router = APIRouter()

    @router.get("/api/status")
    def api_status():
        paths = config.paths
        videos = sorted(list_files(paths.video_dir, paths.video_filters))
        records = store.list_records()
        items = build_work_items(videos, records, paths.record_prefix)
        return JSONResponse({
            "pending_videos": [os.path.basename(v) for v in videos],
            "work_items": [
                [os.path.basename(item.first), os.path.basename(item.second)]
                for item in items
            ],
            "record_count": len(records),
            "mode": config.scheduler.mode,
        })

    @router.get("/api/records")
    def api_records():
        return JSONResponse(store.list_records())

    @router.get("/api/records/{name}")
    def api_record(name: str):
        try:
            return JSONResponse(store.load(name))
        except FileNotFoundError:
            return JSONResponse({"error": "Record not found"}, 404)

    @router.post("/api/settings/{section}")
    async def api_update_settings(section: str, request: Request):
        if section not in SETTINGS_SECTIONS:
            return JSONResponse({"error": "Unknown settings section"}, 404)
        body = await request.json()
        section_config = getattr(config, section)
        typed = _typed_dict(section_config, body)
        for key, value in typed.items():
            setattr(section_config, key, value)
        save_config_values(typed, config_path)
        return JSONResponse({"status": "ok", "updated": typed})

    return router
