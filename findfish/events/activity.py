"""Activity interval detection via frame differencing."""

from __future__ import annotations

from typing import Any

import cv2
import numpy as np

from findfish.config import ActivityConfig
from findfish.events.base import EventBuilder
from findfish.processing.preprocessor import Preprocessor


class ActivityEvent(EventBuilder):
    """A uniquely numbered interval of motion within one video.

    ``start``/``end`` are an initial guess; ``end_frame`` is pushed forward
    on every check that sees motion.
    """

    kind = "activity"

    def __init__(self, event_id: int, start: int, end: int,
                 config: ActivityConfig | None = None,
                 reference: np.ndarray | None = None):
        super().__init__()
        self._cfg = config if config is not None else ActivityConfig()
        self._preprocessor = Preprocessor(self._cfg)
        self._id = event_id
        self._start_frame = start
        self._end_frame = end
        self._active = False
        self._changed_ratio = 0.0
        self._peak_ratio = 0.0
        self._prev_gray = (self._preprocessor.process(reference)
                           if reference is not None else None)

    @property
    def event_id(self) -> int:
        return self._id

    def is_active(self) -> bool:
        """Whether the most recent check saw motion."""
        with self._lock:
            return self._active

    def _check(self, frame: np.ndarray, frame_number: int) -> None:
        gray = self._preprocessor.process(frame)

        if self._prev_gray is None:
            self._prev_gray = gray
            self._active = False
            self._changed_ratio = 0.0
            return

        diff = cv2.absdiff(self._prev_gray, gray)
        _, thresh = cv2.threshold(diff, self._cfg.diff_threshold, 255,
                                  cv2.THRESH_BINARY)
        self._prev_gray = gray

        self._changed_ratio = cv2.countNonZero(thresh) / float(thresh.size)
        self._active = self._changed_ratio >= self._cfg.min_changed_ratio
        if self._active:
            self._peak_ratio = max(self._peak_ratio, self._changed_ratio)
            if frame_number > self._end_frame:
                self._end_frame = frame_number

    def _on_start(self, frame_number: int) -> None:
        self._peak_ratio = self._changed_ratio if self._active else 0.0

    def _on_end(self, frame_number: int) -> None:
        self._active = False

    def _fields(self) -> dict[str, Any]:
        return {
            "id": self._id,
            "active": self._active,
            "peak_changed_ratio": round(self._peak_ratio, 6),
        }
