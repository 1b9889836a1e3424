"""Shared test fixtures: synthetic frames, fake readers, temp directories."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from findfish.config import ActivityConfig, AppConfig


@pytest.fixture
def activity_config() -> ActivityConfig:
    return ActivityConfig(
        resize_width=160,
        resize_height=120,
        blur_kernel=3,
        diff_threshold=20,
        min_changed_ratio=0.01,
        idle_frames=3,
        min_event_frames=2,
    )


@pytest.fixture
def app_config(tmp_path, activity_config) -> AppConfig:
    config = AppConfig()
    config.paths.video_dir = str(tmp_path / "videos")
    config.paths.record_dir = str(tmp_path / "records")
    config.activity = activity_config
    config.marker.stride = 1
    Path(config.paths.video_dir).mkdir()
    Path(config.paths.record_dir).mkdir()
    return config


def make_frame(width: int = 160, height: int = 120) -> np.ndarray:
    """Create a blank black BGR frame."""
    return np.zeros((height, width, 3), dtype=np.uint8)


def add_block(frame: np.ndarray, x: int, y: int, size: int = 30,
              brightness: int = 255) -> np.ndarray:
    """Return a copy of the frame with a bright square drawn at (x, y)."""
    result = frame.copy()
    result[y:y + size, x:x + size] = brightness
    return result


def make_activity_sequence(quiet_before: int = 5, moving: int = 6,
                           quiet_after: int = 6) -> list[np.ndarray]:
    """Still frames, then a block sliding across, then still frames again."""
    frames = [make_frame() for _ in range(quiet_before)]
    for i in range(moving):
        frames.append(add_block(make_frame(), 10 + i * 15, 40))
    last = frames[-1]
    frames.extend(last.copy() for _ in range(quiet_after))
    return frames


def touch(directory: str | Path, *names: str) -> list[str]:
    """Create empty files and return their paths."""
    paths = []
    for name in names:
        path = Path(directory) / name
        path.write_bytes(b"")
        paths.append(str(path))
    return paths


class FakeReader:
    """Stands in for VideoReader, serving in-memory frames per path."""

    def __init__(self, frames_by_path: dict[str, list[np.ndarray]], path: str,
                 fps: float = 25.0):
        self._frames = frames_by_path.get(path, [])
        self.fps = fps

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None

    def __iter__(self):
        yield from enumerate(self._frames)


class StubQRDetector:
    """Decodes a fixed text on chosen frames, nothing elsewhere.

    Frames are identified by a marker pixel value written at (0, 0).
    """

    def __init__(self, text: str, hit_value: int = 7, raise_value: int | None = None):
        self.text = text
        self.hit_value = hit_value
        self.raise_value = raise_value
        self.calls = 0

    def detectAndDecode(self, frame):
        import cv2
        self.calls += 1
        value = int(frame[0, 0, 0]) if frame.ndim == 3 else int(frame[0, 0])
        if self.raise_value is not None and value == self.raise_value:
            raise cv2.error("corrupt marker")
        if value == self.hit_value:
            return self.text, np.zeros((1, 4, 2), dtype=np.float32), None
        return "", None, None


def marked(frame: np.ndarray, value: int) -> np.ndarray:
    """Return a copy of the frame with ``value`` written at pixel (0, 0)."""
    result = frame.copy()
    result[0, 0] = value
    return result
