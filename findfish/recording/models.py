"""Shared data models for the intake and processing pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class VideoRole(str, Enum):
    FIRST = "first"
    SECOND = "second"


@dataclass(frozen=True)
class WorkItem:
    """One pair of raw videos selected for a single processing pass."""
    first: str
    second: str

    @property
    def paths(self) -> tuple[str, str]:
        return self.first, self.second


@dataclass
class VideoSummary:
    """Everything detected in one video, written out as its record."""
    video: str
    role: VideoRole
    partner: str
    frame_count: int = 0
    fps: float = 0.0
    marker: dict[str, Any] = field(default_factory=dict)
    activities: list[dict[str, Any]] = field(default_factory=list)
    sync_offset: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "video": self.video,
            "role": self.role.value,
            "partner": self.partner,
            "frame_count": self.frame_count,
            "fps": self.fps,
            "marker": self.marker,
            "activities": self.activities,
            "sync_offset": self.sync_offset,
        }


@dataclass
class PairResult:
    """Outcome of one dispatched work item."""
    item: WorkItem
    success: bool = False
    error: Optional[str] = None
    records: list[str] = field(default_factory=list)


@dataclass
class CycleReport:
    """What a single batch cycle found and did."""
    discovered: int = 0
    work_items: list[WorkItem] = field(default_factory=list)
    results: list[PairResult] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[WorkItem]:
        return [r.item for r in self.results if not r.success]
