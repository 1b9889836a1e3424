"""Frame preprocessing for motion evidence: resize, grayscale, blur."""

from __future__ import annotations

import cv2
import numpy as np

from findfish.config import ActivityConfig


class Preprocessor:
    """Preprocesses frames for activity detection: resize → grayscale → blur."""

    def __init__(self, config: ActivityConfig):
        self._width = config.resize_width
        self._height = config.resize_height
        # GaussianBlur needs an odd kernel
        self._blur_k = max(1, config.blur_kernel) | 1

    def process(self, frame: np.ndarray) -> np.ndarray:
        """Return a new grayscale, blurred frame. The input is never modified."""
        if frame.shape[1] != self._width or frame.shape[0] != self._height:
            frame = cv2.resize(frame, (self._width, self._height),
                               interpolation=cv2.INTER_AREA)
        if frame.ndim == 3:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        return cv2.GaussianBlur(frame, (self._blur_k, self._blur_k), 0)
