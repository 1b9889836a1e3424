"""Batch loop: discover → filter + pair → dispatch → cleanup, until done."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from findfish.config import AppConfig
from findfish.intake.discovery import list_files
from findfish.intake.pairing import build_work_items
from findfish.recording.models import CycleReport, PairResult, WorkItem

logger = logging.getLogger(__name__)

# Given two video paths, returns truthy on success (or a PairResult).
PairHandler = Callable[[str, str], Any]


class ProcessingScheduler:
    """Drives repeated batch cycles over the raw video directory.

    There is no job ledger: every cycle recomputes its work from what is on
    disk. A pair's inputs are deleted only after it processed successfully;
    failed pairs stay in place and are retried on the next cycle.
    """

    def __init__(self, config: AppConfig, handler: PairHandler,
                 stop_event: threading.Event | None = None):
        self._config = config
        self._handler = handler
        self._stop_event = stop_event or threading.Event()
        self._cycles = 0

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request a stop. The in-flight pair is abandoned, not cleaned up."""
        self._stop_event.set()

    def pending_work(self) -> tuple[list[str], list[WorkItem]]:
        """Discover raw videos and compute this cycle's work items."""
        paths = self._config.paths
        videos = list_files(paths.video_dir, paths.video_filters)
        if not videos:
            return [], []
        records = list_files(paths.record_dir, paths.record_filters)
        return sorted(videos), build_work_items(videos, records, paths.record_prefix)

    def run(self) -> int:
        """Run batch cycles until nothing is left or a stop is requested.

        Returns the number of cycles that dispatched work.
        """
        logger.info("Scheduler started (%s mode)", self._config.scheduler.mode)
        while not self.stopped:
            report = self.run_cycle()
            if report is None:
                break
            if self._config.scheduler.cycle_delay > 0:
                self._stop_event.wait(self._config.scheduler.cycle_delay)

        if self.stopped:
            logger.info("Scheduler stopped after %d cycles", self._cycles)
        else:
            logger.info("No unprocessed videos left after %d cycles", self._cycles)
        return self._cycles

    def run_cycle(self) -> CycleReport | None:
        """Run one batch cycle. Returns None when there is nothing to do."""
        videos, items = self.pending_work()
        if not videos:
            logger.info("No raw videos in %s", self._config.paths.video_dir)
            return None
        if not items:
            logger.info("All %d raw videos already have records", len(videos))
            return None

        self._cycles += 1
        report = CycleReport(discovered=len(videos), work_items=items)
        logger.info("Cycle %d: %d videos, %d work items",
                    self._cycles, len(videos), len(items))

        if self._config.scheduler.mode == "parallel":
            self._dispatch_parallel(items, report)
        else:
            self._dispatch_sequential(items, report)

        for item in report.failed:
            logger.warning("Pair failed, inputs kept for retry: %s + %s",
                           item.first, item.second)
        return report

    def _dispatch_sequential(self, items: list[WorkItem], report: CycleReport) -> None:
        for item in items:
            if self.stopped:
                break
            result = self._dispatch(item)
            report.results.append(result)
            if result.success:
                report.deleted.extend(self._cleanup(item))

    def _dispatch_parallel(self, items: list[WorkItem], report: CycleReport) -> None:
        workers = max(1, min(self._config.scheduler.max_workers, len(items)))
        with ThreadPoolExecutor(max_workers=workers,
                                thread_name_prefix="findfish-pair") as pool:
            futures = [pool.submit(self._dispatch, item) for item in items]
            for future in futures:
                # _dispatch never raises
                result = future.result()
                report.results.append(result)
                if result.success:
                    report.deleted.extend(self._cleanup(result.item))

    def _dispatch(self, item: WorkItem) -> PairResult:
        """Call the handler for one pair, turning any exception into a failure."""
        if self.stopped:
            return PairResult(item=item, success=False, error="stopped")
        try:
            outcome = self._handler(item.first, item.second)
        except Exception as exc:
            if self.stopped:
                logger.info("Abandoned %s + %s: %s", item.first, item.second, exc)
            else:
                logger.exception("Error processing %s + %s", item.first, item.second)
            return PairResult(item=item, success=False, error=str(exc))

        if isinstance(outcome, PairResult):
            return outcome
        return PairResult(item=item, success=bool(outcome))

    @staticmethod
    def _cleanup(item: WorkItem) -> list[str]:
        """Delete both inputs of a successful pair."""
        deleted = []
        for path in dict.fromkeys(item.paths):
            try:
                os.remove(path)
                deleted.append(path)
                logger.info("Deleted processed video: %s", path)
            except FileNotFoundError:
                logger.debug("Already gone: %s", path)
            except OSError:
                logger.exception("Could not delete %s", path)
        return deleted
