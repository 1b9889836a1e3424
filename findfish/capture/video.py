"""Sequential frame reader over a closed video file."""

from __future__ import annotations

import logging
from typing import Iterator

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class VideoOpenError(RuntimeError):
    """Raised when a video file cannot be opened for decoding."""


class VideoReader:
    """Reads frames one at a time from a video file.

    Use as a context manager; iterating yields ``(frame_number, frame)``
    with frame numbers starting at 0.
    """

    def __init__(self, path: str, fallback_fps: float = 30.0):
        self._path = path
        self._cap: cv2.VideoCapture | None = None
        self._fps = fallback_fps
        self._frame_count = 0

    @property
    def path(self) -> str:
        return self._path

    @property
    def fps(self) -> float:
        return self._fps

    @property
    def frame_count(self) -> int:
        """Frame count reported by the container (may be 0 or approximate)."""
        return self._frame_count

    def open(self) -> None:
        self.release()
        self._cap = cv2.VideoCapture(self._path)
        if not self._cap.isOpened():
            self.release()
            raise VideoOpenError(f"Failed to open video: {self._path}")

        fps = self._cap.get(cv2.CAP_PROP_FPS)
        if fps and fps > 0:
            self._fps = fps
        self._frame_count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        logger.info("Opened video: %s (%.1f FPS, ~%d frames)",
                    self._path, self._fps, self._frame_count)

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __enter__(self) -> VideoReader:
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    def __iter__(self) -> Iterator[tuple[int, np.ndarray]]:
        if self._cap is None:
            raise VideoOpenError(f"Video not open: {self._path}")
        frame_number = 0
        while True:
            ok, frame = self._cap.read()
            if not ok or frame is None:
                break
            yield frame_number, frame
            frame_number += 1
