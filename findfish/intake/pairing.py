"""Skip already-processed footage and pair the rest for stereo processing.

Whether a video was processed is decided purely from file names: every
record is named ``<prefix><token>.<ext>`` and a raw video whose name
contains ``token`` is considered done.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Sequence

from findfish.recording.models import WorkItem

logger = logging.getLogger(__name__)


def record_token(record_name: str, prefix: str) -> str:
    """Extract the identifying token from a record file name."""
    name = os.path.basename(record_name)
    idx = name.find(prefix) if prefix else -1
    if idx >= 0:
        name = name[idx + len(prefix):]
    stem, dot, _ext = name.rpartition(".")
    return stem if dot else name


def exclude_processed(videos: Sequence[str], record_names: Iterable[str],
                      prefix: str) -> list[str]:
    """Remove videos already covered by a record.

    Each token removes at most one video: the first one, in ``videos``
    order, whose name contains it.
    """
    remaining = list(videos)
    for record_name in record_names:
        token = record_token(record_name, prefix)
        if not token:
            continue
        for i, video in enumerate(remaining):
            if token in os.path.basename(video):
                logger.debug("Skipping %s (already processed as %s)",
                             video, record_name)
                del remaining[i]
                break
    return remaining


def pair_videos(videos: Sequence[str]) -> list[WorkItem]:
    """Pair sorted videos for stereo processing.

    Starting indices step by two through the first half of the list and
    each is paired with its successor, wrapping around at the end.
    ``[a, b, c, d, e]`` gives ``(a, b), (c, d)``; a single video is paired
    with itself.
    """
    count = len(videos)
    items = []
    i = 0
    while i < count / 2:
        items.append(WorkItem(videos[i], videos[(i + 1) % count]))
        i += 2
    return items


def build_work_items(videos: Iterable[str], record_names: Iterable[str],
                     prefix: str) -> list[WorkItem]:
    """Sort, drop processed videos, re-sort and pair."""
    remaining = exclude_processed(sorted(videos), record_names, prefix)
    return pair_videos(sorted(remaining))
