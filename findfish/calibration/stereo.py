"""Stereo calibration from chessboard image pairs and point triangulation."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from itertools import combinations
from pathlib import Path

import cv2
import numpy as np
import yaml
from scipy.spatial.distance import pdist

from findfish.config import CalibrationConfig
from findfish.intake.discovery import list_files

logger = logging.getLogger(__name__)

MATRIX_KEYS = ("K1", "D1", "K2", "D2", "R", "T", "R1", "R2", "P1", "P2", "Q")


class CalibrationError(RuntimeError):
    """Raised when calibration or triangulation cannot proceed."""


@dataclass
class StereoCalibrationResult:
    rms: float
    pairs_used: int
    matrices: dict[str, np.ndarray] = field(default_factory=dict)


@dataclass
class Measurement:
    """Triangulated named points and the distances between them."""
    points: dict[str, tuple[float, float, float]] = field(default_factory=dict)
    distances: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "points": {k: [float(c) for c in v] for k, v in self.points.items()},
            "distances": {k: float(v) for k, v in self.distances.items()},
        }


class StereoCalibrator:
    """Collects chessboard corners from left/right image pairs and calibrates."""

    def __init__(self, config: CalibrationConfig, output_path: str | None = None):
        self._cfg = config
        self._output = output_path or config.calibration_file
        self._board = (config.board_cols, config.board_rows)
        self._image_size = (config.image_width, config.image_height)
        self._object_points: list[np.ndarray] = []
        self._left_points: list[np.ndarray] = []
        self._right_points: list[np.ndarray] = []

        objp = np.zeros((self._board[0] * self._board[1], 3), np.float32)
        objp[:, :2] = np.mgrid[0:self._board[0], 0:self._board[1]].T.reshape(-1, 2)
        self._board_points = objp * config.square_size

    @property
    def pairs_found(self) -> int:
        return len(self._object_points)

    def read_images(self, left_dir: str, right_dir: str) -> int:
        """Find chessboard corners in each image pair. Returns usable pairs."""
        left = sorted(list_files(left_dir, self._cfg.image_filters))
        right = sorted(list_files(right_dir, self._cfg.image_filters))
        if len(left) != len(right):
            logger.warning("Image count mismatch: %d left, %d right",
                           len(left), len(right))

        for left_path, right_path in zip(left, right):
            left_corners = self._find_corners(left_path)
            right_corners = self._find_corners(right_path)
            if left_corners is None or right_corners is None:
                logger.info("Skipping pair %s / %s (board not found)",
                            os.path.basename(left_path), os.path.basename(right_path))
                continue
            self._object_points.append(self._board_points)
            self._left_points.append(left_corners)
            self._right_points.append(right_corners)

        logger.info("Found chessboard in %d image pairs", self.pairs_found)
        return self.pairs_found

    def run(self) -> StereoCalibrationResult:
        """Calibrate both cameras, then the stereo pair, and save the result."""
        if self.pairs_found < self._cfg.min_pairs:
            raise CalibrationError(
                f"Need at least {self._cfg.min_pairs} usable image pairs, "
                f"found {self.pairs_found}"
            )

        _, k1, d1, _, _ = cv2.calibrateCamera(
            self._object_points, self._left_points, self._image_size, None, None)
        _, k2, d2, _, _ = cv2.calibrateCamera(
            self._object_points, self._right_points, self._image_size, None, None)

        criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 100, 1e-5)
        rms, k1, d1, k2, d2, r, t, _, _ = cv2.stereoCalibrate(
            self._object_points, self._left_points, self._right_points,
            k1, d1, k2, d2, self._image_size,
            criteria=criteria, flags=cv2.CALIB_FIX_INTRINSIC,
        )
        r1, r2, p1, p2, q, _, _ = cv2.stereoRectify(k1, d1, k2, d2,
                                                     self._image_size, r, t)

        matrices = {"K1": k1, "D1": d1, "K2": k2, "D2": d2, "R": r, "T": t,
                    "R1": r1, "R2": r2, "P1": p1, "P2": p2, "Q": q}
        save_calibration(self._output, matrices, self._image_size, rms)
        logger.info("Stereo calibration RMS %.4f, saved to %s", rms, self._output)
        return StereoCalibrationResult(rms=float(rms), pairs_used=self.pairs_found,
                                       matrices=matrices)

    def _find_corners(self, path: str) -> np.ndarray | None:
        image = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
        if image is None:
            logger.warning("Could not read image: %s", path)
            return None
        found, corners = cv2.findChessboardCorners(image, self._board, None)
        if not found:
            return None
        criteria = (cv2.TERM_CRITERIA_EPS + cv2.TERM_CRITERIA_MAX_ITER, 30, 0.001)
        return cv2.cornerSubPix(image, corners, (11, 11), (-1, -1), criteria)


def save_calibration(path: str, matrices: dict[str, np.ndarray],
                     image_size: tuple[int, int], rms: float = 0.0) -> None:
    """Write calibration matrices in OpenCV's YAML storage format."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    fs = cv2.FileStorage(path, cv2.FILE_STORAGE_WRITE)
    try:
        fs.write("image_width", int(image_size[0]))
        fs.write("image_height", int(image_size[1]))
        fs.write("rms", float(rms))
        for key, value in matrices.items():
            fs.write(key, np.asarray(value, dtype=np.float64))
    finally:
        fs.release()


def load_calibration(path: str) -> dict[str, np.ndarray]:
    """Read matrices written by :func:`save_calibration`. Missing keys are skipped."""
    if not Path(path).exists():
        raise CalibrationError(f"Calibration file not found: {path}")
    fs = cv2.FileStorage(path, cv2.FILE_STORAGE_READ)
    try:
        matrices = {}
        for key in MATRIX_KEYS:
            node = fs.getNode(key)
            if not node.empty():
                matrices[key] = node.mat()
    finally:
        fs.release()

    for key in ("P1", "P2"):
        if key not in matrices:
            raise CalibrationError(f"Calibration file {path} has no {key}")
    return matrices


def load_measure_points(path: str) -> list[dict]:
    """Load named left/right pixel coordinates from a YAML file."""
    if not Path(path).exists():
        raise CalibrationError(f"Measure points file not found: {path}")
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise CalibrationError(f"{path} must be a mapping with a points list")
    points = raw.get("points") or []
    if not isinstance(points, list):
        raise CalibrationError(f"points in {path} must be a list")
    for i, point in enumerate(points):
        if not isinstance(point, dict):
            raise CalibrationError(f"Point #{i} in {path} is not a mapping")
        if "left" not in point or "right" not in point:
            raise CalibrationError(f"Point #{i} in {path} needs left and right")
        point.setdefault("name", f"p{i}")
    return points


def _rectify(points: np.ndarray, matrices: dict[str, np.ndarray],
             side: str) -> np.ndarray:
    """Undistort and rectify pixel points for one camera, if intrinsics exist."""
    k, d, r, p = (matrices.get(f"K{side}"), matrices.get(f"D{side}"),
                  matrices.get(f"R{side}"), matrices[f"P{side}"])
    if k is None or d is None:
        return np.ascontiguousarray(points.reshape(-1, 2).T)
    undistorted = cv2.undistortPoints(points.reshape(-1, 1, 2), k, d, R=r, P=p)
    return np.ascontiguousarray(undistorted.reshape(-1, 2).T)


def triangulate_points(measure_path: str, calibration_path: str) -> Measurement:
    """Triangulate the named point pairs and measure distances between them."""
    matrices = load_calibration(calibration_path)
    entries = load_measure_points(measure_path)
    if not entries:
        raise CalibrationError(f"No points in {measure_path}")

    left = np.array([e["left"] for e in entries], dtype=np.float64)
    right = np.array([e["right"] for e in entries], dtype=np.float64)

    homogeneous = cv2.triangulatePoints(
        matrices["P1"], matrices["P2"],
        _rectify(left, matrices, "1"), _rectify(right, matrices, "2"),
    )
    xyz = (homogeneous[:3] / homogeneous[3]).T

    names = [str(e["name"]) for e in entries]
    measurement = Measurement(
        points={name: tuple(float(c) for c in p) for name, p in zip(names, xyz)},
    )
    if len(names) > 1:
        for (a, b), dist in zip(combinations(names, 2), pdist(xyz)):
            measurement.distances[f"{a}-{b}"] = float(dist)

    logger.info("Triangulated %d points", len(names))
    return measurement
