"""YAML configuration loader with dataclass mapping."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml


@dataclass
class PathsConfig:
    video_dir: str = "static/videos"
    record_dir: str = "static/video-info"
    video_filters: list[str] = field(default_factory=lambda: [".mp4", ".MP4"])
    record_filters: list[str] = field(default_factory=lambda: [".json", ".JSON"])
    record_prefix: str = "DE_"


@dataclass
class ActivityConfig:
    resize_width: int = 640
    resize_height: int = 360
    blur_kernel: int = 5
    diff_threshold: int = 25
    min_changed_ratio: float = 0.002
    idle_frames: int = 15
    min_event_frames: int = 3
    frame_step: int = 1


@dataclass
class MarkerConfig:
    scan_frames: int = 900      # 0 scans the whole video
    stride: int = 5


@dataclass
class SchedulerConfig:
    mode: str = "sequential"    # "sequential" or "parallel"
    max_workers: int = 2
    cycle_delay: float = 0.0


@dataclass
class CalibrationConfig:
    image_width: int = 1920
    image_height: int = 1440
    board_cols: int = 9
    board_rows: int = 6
    square_size: float = 0.025  # metres
    min_pairs: int = 5
    image_filters: list[str] = field(default_factory=lambda: [".png", ".jpg", ".jpeg"])
    calibration_file: str = "stereo_calibration.yaml"
    measure_points: str = "calib_config/measure_points.yaml"


@dataclass
class LoggingConfig:
    log_dir: str = "data/logs"


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class AppConfig:
    paths: PathsConfig = field(default_factory=PathsConfig)
    activity: ActivityConfig = field(default_factory=ActivityConfig)
    marker: MarkerConfig = field(default_factory=MarkerConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    web: WebConfig = field(default_factory=WebConfig)


def _apply_dict(dc: object, data: dict) -> None:
    """Apply dictionary values onto a dataclass instance, ignoring unknown keys."""
    for key, value in data.items():
        if hasattr(dc, key):
            setattr(dc, key, value)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load configuration from a YAML file, falling back to defaults."""
    config = AppConfig()

    if path is None:
        path = os.environ.get("CONFIG_PATH", "config/default.yaml")

    path = Path(path)
    if path.exists():
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}

        section_map = {
            "paths": config.paths,
            "activity": config.activity,
            "marker": config.marker,
            "scheduler": config.scheduler,
            "calibration": config.calibration,
            "logging": config.logging,
            "web": config.web,
        }

        for section_name, dc_instance in section_map.items():
            if section_name in raw and isinstance(raw[section_name], dict):
                _apply_dict(dc_instance, raw[section_name])

    # Environment variable overrides
    env_video_dir = os.environ.get("FINDFISH_VIDEO_DIR")
    if env_video_dir:
        config.paths.video_dir = env_video_dir

    env_record_dir = os.environ.get("FINDFISH_RECORD_DIR")
    if env_record_dir:
        config.paths.record_dir = env_record_dir

    env_host = os.environ.get("WEB_HOST")
    if env_host:
        config.web.host = env_host

    env_port = os.environ.get("WEB_PORT")
    if env_port:
        config.web.port = int(env_port)

    return config


def save_config_values(data: dict, path: str | Path | None = None) -> None:
    """Update key/value pairs in the YAML config file, preserving all comments."""
    if path is None:
        path = os.environ.get("CONFIG_PATH", "config/default.yaml")
    path = Path(path)
    if not path.exists():
        return
    text = path.read_text()
    for key, value in data.items():
        escaped = re.escape(key)
        if isinstance(value, bool):
            val_str = "true" if value else "false"
            text = re.sub(rf'(\b{escaped}:\s*)(true|false)', rf'\g<1>{val_str}', text)
        elif isinstance(value, str):
            text = re.sub(rf'(\b{escaped}:\s*)"[^"]*"', rf'\g<1>"{value}"', text)
        else:
            text = re.sub(rf'(\b{escaped}:\s*)[\d.]+', rf'\g<1>{value}', text)
    path.write_text(text)
