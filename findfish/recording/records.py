"""JSON record files, one per processed video."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from findfish.intake.discovery import list_files

logger = logging.getLogger(__name__)


class RecordStore:
    """Reads and writes ``<prefix><video stem>.json`` records."""

    def __init__(self, record_dir: str, prefix: str = "DE_",
                 filters: list[str] | None = None):
        self._dir = Path(record_dir)
        self._prefix = prefix
        self._filters = filters or [".json", ".JSON"]

    @property
    def record_dir(self) -> Path:
        return self._dir

    def record_path(self, video_path: str) -> Path:
        stem = Path(video_path).stem
        return self._dir / f"{self._prefix}{stem}.json"

    def write(self, video_path: str, document: dict[str, Any]) -> Path:
        """Write the record for ``video_path``, replacing any previous one."""
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self.record_path(video_path)

        fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".part")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

        logger.info("Wrote record: %s", path)
        return path

    def list_records(self) -> list[str]:
        """Names of all record files, sorted."""
        return sorted(os.path.basename(p) for p in list_files(self._dir, self._filters))

    def load(self, name: str) -> dict[str, Any]:
        """Load one record by file name.

        Raises FileNotFoundError for unknown names or names that point
        outside the record directory.
        """
        path = (self._dir / name).resolve()
        if path.parent != self._dir.resolve() or not path.is_file():
            raise FileNotFoundError(name)
        with open(path, "r") as f:
            return json.load(f)
