"""Per-pair processing unit: decode both videos, run detectors, write records."""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable

import numpy as np

from findfish.capture.video import VideoOpenError, VideoReader
from findfish.config import ActivityConfig, AppConfig
from findfish.events.activity import ActivityEvent
from findfish.events.marker import QREvent
from findfish.recording.models import PairResult, VideoRole, VideoSummary, WorkItem
from findfish.recording.records import RecordStore

logger = logging.getLogger(__name__)


class ProcessingCancelled(RuntimeError):
    """Raised when a stop was requested while a video was being processed."""


ReaderFactory = Callable[[str], VideoReader]


class PairProcessor:
    """Runs marker and activity detection over both videos of a work item.

    Each video gets its own detector set. Records are written only after
    a video has been read to the end.
    """

    def __init__(self, config: AppConfig, store: RecordStore | None = None,
                 stop_event: threading.Event | None = None,
                 reader_factory: ReaderFactory = VideoReader,
                 qr_detector_factory: Callable[[], object] | None = None):
        self._config = config
        self._store = store or RecordStore(
            config.paths.record_dir,
            prefix=config.paths.record_prefix,
            filters=config.paths.record_filters,
        )
        self._stop_event = stop_event or threading.Event()
        self._reader_factory = reader_factory
        self._qr_detector_factory = qr_detector_factory

    def __call__(self, first: str, second: str) -> bool:
        return self.process(first, second).success

    def process(self, first: str, second: str) -> PairResult:
        """Process one pair. Exceptions propagate to the caller."""
        item = WorkItem(first, second)
        logger.info("Processing pair: %s + %s", first, second)

        summaries = [
            self.analyze_video(first, VideoRole.FIRST, second),
            self.analyze_video(second, VideoRole.SECOND, first),
        ]
        self._apply_sync_offset(summaries)

        result = PairResult(item=item, success=True)
        for summary, path in zip(summaries, item.paths):
            result.records.append(str(self._store.write(path, summary.to_dict())))
        return result

    def analyze_video(self, path: str, role: VideoRole, partner: str) -> VideoSummary:
        """Run all detectors over one video."""
        marker_cfg = self._config.marker
        activity_cfg = self._config.activity

        qr = QREvent(self._qr_detector_factory() if self._qr_detector_factory else None)
        qr.start_event(0)
        scanning = True
        last_scanned = 0

        tracker = _ActivityLoop(activity_cfg)
        frame_step = max(1, activity_cfg.frame_step)
        stride = max(1, marker_cfg.stride)
        last_frame = -1

        with self._reader_factory(path) as reader:
            for frame_number, frame in reader:
                if self._stop_event.is_set():
                    raise ProcessingCancelled(f"Stopped while processing {path}")
                last_frame = frame_number

                if scanning:
                    if marker_cfg.scan_frames and frame_number >= marker_cfg.scan_frames:
                        scanning = False
                    elif frame_number % stride == 0:
                        qr.check_frame(frame, frame_number)
                        last_scanned = frame_number
                        if qr.detected_qr():
                            scanning = False

                if frame_number % frame_step == 0:
                    tracker.feed(frame, frame_number)

            fps = reader.fps

        if last_frame < 0:
            raise VideoOpenError(f"No frames decoded from {path}")

        qr.end_event(last_scanned)
        activities = tracker.finish()

        logger.info("%s: %d frames, marker %s, %d activity events",
                    os.path.basename(path), last_frame + 1,
                    "found" if qr.detected_qr() else "not found", len(activities))

        return VideoSummary(
            video=os.path.basename(path),
            role=role,
            partner=os.path.basename(partner),
            frame_count=last_frame + 1,
            fps=fps,
            marker=qr.get_as_json(),
            activities=[event.get_as_json() for event in activities],
        )

    @staticmethod
    def _apply_sync_offset(summaries: list[VideoSummary]) -> None:
        """Frame offset of the second video relative to the first, from the marker."""
        first, second = summaries
        if first.marker.get("detected") and second.marker.get("detected"):
            offset = second.marker["detected_frame"] - first.marker["detected_frame"]
            first.sync_offset = offset
            second.sync_offset = offset


class _ActivityLoop:
    """Owns ActivityEvent lifecycles for one video.

    An idle probe watches for motion. The first active check starts it as a
    real event; it ends after ``idle_frames`` consecutive quiet checks and a
    fresh probe with the next id takes over.
    """

    def __init__(self, config: ActivityConfig):
        self._cfg = config
        self._next_id = 0
        self._current: ActivityEvent | None = None
        self._running = False
        self._quiet = 0
        self._finished: list[ActivityEvent] = []

    def feed(self, frame: np.ndarray, frame_number: int) -> None:
        if self._current is None:
            self._current = ActivityEvent(self._next_id, frame_number,
                                          frame_number, self._cfg)

        event = self._current
        event.check_frame(frame, frame_number)

        if not self._running:
            if event.is_active():
                event.start_event(frame_number)
                self._running = True
                self._quiet = 0
            return

        if event.is_active():
            self._quiet = 0
            return

        self._quiet += 1
        if self._quiet >= max(1, self._cfg.idle_frames):
            self._close(event)
            self._current = ActivityEvent(self._next_id, frame_number,
                                          frame_number, self._cfg,
                                          reference=frame)

    def finish(self) -> list[ActivityEvent]:
        if self._running and self._current is not None:
            self._close(self._current)
        self._current = None
        return list(self._finished)

    def _close(self, event: ActivityEvent) -> None:
        event.end_event(event.end_frame)
        self._running = False
        self._quiet = 0
        start, end = event.get_range()
        if end - start + 1 >= self._cfg.min_event_frames:
            self._finished.append(event)
            self._next_id += 1
        else:
            logger.debug("Dropped short activity %d (%d-%d)", event.event_id, start, end)

