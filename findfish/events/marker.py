"""QR calibration marker detection with geo URI parsing."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import unquote

import cv2
import numpy as np

from findfish.events.base import EventBuilder

logger = logging.getLogger(__name__)

GEO_SCHEME = "geo:"


def parse_geo_uri(uri: str) -> dict[str, str]:
    """Parse the key/value query of a geo URI.

    ``geo:1.0,2.0?key1=val1&garbage&key2=val2`` gives
    ``{"key1": "val1", "key2": "val2"}``. Fragments without ``=`` or with
    an empty key are dropped.
    """
    _, sep, query = uri.partition("?")
    if not sep:
        return {}

    values: dict[str, str] = {}
    for fragment in query.split("&"):
        key, eq, value = fragment.partition("=")
        key = key.strip()
        if not eq or not key:
            continue
        values[unquote(key)] = unquote(value.strip())
    return values


def parse_geo_coordinates(uri: str) -> tuple[float, ...] | None:
    """Return the numeric coordinates of a geo URI, or None if it has none."""
    text = uri.strip()
    if not text.lower().startswith(GEO_SCHEME):
        return None
    path = text[len(GEO_SCHEME):].split("?", 1)[0].split(";", 1)[0]
    try:
        coords = tuple(float(part) for part in path.split(","))
    except ValueError:
        return None
    return coords if len(coords) >= 2 else None


class QREvent(EventBuilder):
    """Scans frames for a QR marker. Detection latches once found."""

    kind = "qr"

    def __init__(self, detector: Any | None = None):
        super().__init__()
        self._detector = detector if detector is not None else cv2.QRCodeDetector()
        self._detected = False
        self._detected_frame: int | None = None
        self._data: str | None = None
        self._geo: dict[str, str] = {}
        self._coordinates: tuple[float, ...] | None = None

    def detected_qr(self) -> bool:
        """Whether a marker was decoded in any checked frame."""
        with self._lock:
            return self._detected

    @property
    def geo(self) -> dict[str, str]:
        with self._lock:
            return dict(self._geo)

    def _on_start(self, frame_number: int) -> None:
        self._detected = False
        self._detected_frame = None
        self._data = None
        self._geo = {}
        self._coordinates = None

    def _check(self, frame: np.ndarray, frame_number: int) -> None:
        if self._detected:
            return

        try:
            text, _points, _ = self._detector.detectAndDecode(frame)
        except cv2.error:
            logger.debug("QR decode failed on frame %d", frame_number)
            return

        if not text:
            return

        self._detected = True
        self._detected_frame = frame_number
        self._data = text
        self._geo = parse_geo_uri(text)
        self._coordinates = parse_geo_coordinates(text)
        logger.info("QR marker found on frame %d: %s", frame_number, text)

    def _fields(self) -> dict[str, Any]:
        return {
            "detected": self._detected,
            "detected_frame": self._detected_frame,
            "data": self._data,
            "geo": dict(self._geo),
            "coordinates": list(self._coordinates) if self._coordinates else None,
        }
