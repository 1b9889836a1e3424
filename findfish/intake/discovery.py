"""Non-recursive directory listing with substring extension filters."""

from __future__ import annotations

import logging
import os
from typing import Iterable

logger = logging.getLogger(__name__)


def list_files(directory: str | os.PathLike, filters: Iterable[str]) -> list[str]:
    """List direct children of ``directory`` whose name contains any filter.

    Matching is by substring, so ``.mp4`` also matches ``clip.mp4.bak``.
    A missing or unreadable directory gives an empty list. The order is
    whatever the filesystem returns; callers sort.
    """
    filters = list(filters)
    try:
        entries = os.scandir(directory)
    except OSError as exc:
        logger.debug("Cannot list %s: %s", directory, exc)
        return []

    files = []
    with entries:
        for entry in entries:
            if entry.name in (".", ".."):
                continue
            if any(f in entry.name for f in filters):
                files.append(os.path.join(os.fspath(directory), entry.name))
    return files
