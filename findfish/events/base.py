"""Frame-range event lifecycle shared by all detectors.

Every event lives between a start and an end frame of one video. A detector
is started, fed frames in increasing frame order, ended, and then turned into
a plain dict record for serialization.
"""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any

import numpy as np

NOT_SET = -1


class EventBuilder(ABC):
    """Abstract base for a frame-range event."""

    kind = "event"

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: np.ndarray | None = None
        self._start_frame = NOT_SET
        self._end_frame = NOT_SET
        self._ended = False
        self._record: dict[str, Any] | None = None

    @property
    def start_frame(self) -> int:
        return self._start_frame

    @property
    def end_frame(self) -> int:
        return self._end_frame

    @property
    def frame(self) -> np.ndarray | None:
        """Last frame checked while the event was open. Cleared on end."""
        return self._frame

    def start_event(self, frame_number: int) -> None:
        """Mark the start of a fresh occurrence at ``frame_number``."""
        with self._lock:
            self._start_frame = frame_number
            self._end_frame = frame_number
            self._ended = False
            self._record = None
            self._on_start(frame_number)

    def check_frame(self, frame: np.ndarray, frame_number: int) -> None:
        """Examine one frame for detector-specific evidence.

        The frame is treated as read-only; detectors sharing it never
        modify it in place. Ignored once the event has ended.
        """
        with self._lock:
            if self._ended:
                return
            self._frame = frame
            self._check(frame, frame_number)

    def end_event(self, frame_number: int) -> None:
        """Mark the end of the event and make it eligible for serialization."""
        with self._lock:
            if self._start_frame == NOT_SET:
                self._start_frame = frame_number
            self._end_frame = max(frame_number, self._start_frame)
            self._ended = True
            self._frame = None
            self._record = None
            self._on_end(frame_number)

    def get_range(self) -> tuple[int, int]:
        with self._lock:
            return self._start_frame, self._end_frame

    def get_as_json(self) -> dict[str, Any]:
        """Return the event as a JSON-serializable dict.

        The record is cached once the event has ended. Callers always get
        their own copy.
        """
        with self._lock:
            if self._record is None or not self._ended:
                record = {
                    "type": self.kind,
                    "start_frame": self._start_frame,
                    "end_frame": self._end_frame,
                }
                record.update(self._fields())
                if not self._ended:
                    return record
                self._record = record
            return copy.deepcopy(self._record)

    # Hooks, always called with the lock held.

    def _on_start(self, frame_number: int) -> None:
        pass

    def _on_end(self, frame_number: int) -> None:
        pass

    @abstractmethod
    def _check(self, frame: np.ndarray, frame_number: int) -> None:
        ...

    @abstractmethod
    def _fields(self) -> dict[str, Any]:
        ...
