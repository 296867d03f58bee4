"""
Settings manager for AttentionTracker.

Loads/saves JSON settings from AttentionTracker/settings.json (or an explicit
path) and exposes typed accessors. Missing keys fall back to DEFAULTS.
"""
from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


# Moving-dot calibration path (fractional screen coords)
DEFAULT_WAYPOINTS: List[Tuple[float, float]] = [
    (0.5, 0.5),
    (0.05, 0.05), (0.95, 0.05), (0.95, 0.95), (0.05, 0.95),
    (0.05, 0.05), (0.5, 0.05), (0.5, 0.5),
    (0.95, 0.5), (0.5, 0.5), (0.5, 0.95),
    (0.5, 0.5), (0.05, 0.5), (0.5, 0.5),
    (0.3, 0.3), (0.7, 0.3), (0.7, 0.7),
    (0.3, 0.7), (0.5, 0.5),
]

# Post-fit verification dots: center plus four corners at a margin
DEFAULT_VERIFY_TARGETS: List[Tuple[float, float]] = [
    (0.5, 0.5),
    (0.08, 0.08),
    (0.92, 0.08),
    (0.08, 0.92),
    (0.92, 0.92),
]

DEFAULTS: Dict[str, Any] = {
    "camera_index": 0,
    "screen": {"rect": [0, 0, 1280, 720], "content_rect": None},
    "frame": {"size": [640, 360], "fps": 30},
    "normalizer": {"blink_ratio": 0.15, "min_extent": 1e-4},
    "outlier": {"threshold": 0.2},
    "calibration": {
        "dwell_ms": 1400,
        "transit_ms": 1200,
        "settle_ms": 400,
        "min_pairs": 7,
        "pivot_eps": 1e-12,
        "waypoints": [list(p) for p in DEFAULT_WAYPOINTS],
    },
    "verification": {
        "targets": [list(p) for p in DEFAULT_VERIFY_TARGETS],
        "sample_window": 8,
        "min_samples": 2,
        "buffer_size": 20,
    },
    "filter": {"min_cutoff": 0.5, "beta": 0.08, "d_cutoff": 1.0},
    "attention": {
        "heatmap_resolution": 4,
        "heatmap_radius": 4,
        "region_grid": 4,
        "bucket_sec": 0.5,
        "expected_gaze_hz": 12.0,
        "intensity_window_sec": 2.0,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


class SettingsManager:
    def __init__(self, path: Optional[str] = None) -> None:
        if path is None:
            here = os.path.dirname(os.path.abspath(__file__))
            path = os.path.join(os.path.dirname(here), "settings.json")
        self.path = path
        self.data: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        if not os.path.exists(self.path):
            self.data = copy.deepcopy(DEFAULTS)
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed settings file {self.path}: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError(f"Malformed settings file {self.path}: expected a JSON object")
        for key, default in DEFAULTS.items():
            if isinstance(default, dict) and key in raw and not isinstance(raw[key], dict):
                raise ValueError(f"Malformed settings file {self.path}: '{key}' must be an object")
        self.data = _merge(DEFAULTS, raw)
        logger.info("Loaded settings from %s", self.path)

    def save(self) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self.data, f, indent=2)

    def _section(self, name: str) -> Dict[str, Any]:
        return self.data.setdefault(name, copy.deepcopy(DEFAULTS.get(name, {})))

    # Convenience accessors -------------------------------------------------
    def camera_index(self) -> int:
        return int(self.data.get("camera_index", 0))

    def set_camera_index(self, idx: int) -> None:
        self.data["camera_index"] = int(idx)

    def screen_rect(self) -> Tuple[float, float, float, float]:
        left, top, w, h = self._section("screen").get("rect", DEFAULTS["screen"]["rect"])
        return float(left), float(top), float(w), float(h)

    def set_screen_rect(self, left: float, top: float, width: float, height: float) -> None:
        self._section("screen")["rect"] = [float(left), float(top), float(width), float(height)]

    def content_rect(self) -> Optional[Tuple[float, float, float, float]]:
        """Screen rectangle the content frame is shown in; None means the calibration rect."""
        rect = self._section("screen").get("content_rect")
        if not rect:
            return None
        left, top, w, h = rect
        return float(left), float(top), float(w), float(h)

    def set_content_rect(self, left: float, top: float, width: float, height: float) -> None:
        self._section("screen")["content_rect"] = [float(left), float(top), float(width), float(height)]

    def frame_size(self) -> Tuple[int, int]:
        w, h = self._section("frame").get("size", DEFAULTS["frame"]["size"])
        return int(w), int(h)

    def set_frame_size(self, w: int, h: int) -> None:
        self._section("frame")["size"] = [int(w), int(h)]

    def frame_fps(self) -> float:
        return float(self._section("frame").get("fps", 30))

    def blink_ratio(self) -> float:
        return float(self._section("normalizer").get("blink_ratio", 0.15))

    def min_eye_extent(self) -> float:
        return float(self._section("normalizer").get("min_extent", 1e-4))

    def outlier_threshold(self) -> float:
        return float(self._section("outlier").get("threshold", 0.2))

    def set_outlier_threshold(self, v: float) -> None:
        self._section("outlier")["threshold"] = float(v)

    # Calibration -----------------------------------------------------------
    def calibration_timing(self) -> Tuple[float, float, float]:
        """Return (dwell, transit, settle) in seconds."""
        sec = self._section("calibration")
        return (
            float(sec.get("dwell_ms", 1400)) / 1000.0,
            float(sec.get("transit_ms", 1200)) / 1000.0,
            float(sec.get("settle_ms", 400)) / 1000.0,
        )

    def calibration_waypoints(self) -> List[Tuple[float, float]]:
        pts = self._section("calibration").get("waypoints") or DEFAULTS["calibration"]["waypoints"]
        return [(float(p[0]), float(p[1])) for p in pts]

    def set_calibration_waypoints(self, pts: List[Tuple[float, float]]) -> None:
        self._section("calibration")["waypoints"] = [[float(x), float(y)] for x, y in pts]

    def min_calibration_pairs(self) -> int:
        return int(self._section("calibration").get("min_pairs", 7))

    def pivot_eps(self) -> float:
        return float(self._section("calibration").get("pivot_eps", 1e-12))

    def verification_targets(self) -> List[Tuple[float, float]]:
        pts = self._section("verification").get("targets") or DEFAULTS["verification"]["targets"]
        return [(float(p[0]), float(p[1])) for p in pts]

    def verification_window(self) -> Tuple[int, int]:
        """Return (sample_window, min_samples)."""
        sec = self._section("verification")
        return int(sec.get("sample_window", 8)), int(sec.get("min_samples", 2))

    def sample_buffer_size(self) -> int:
        return int(self._section("verification").get("buffer_size", 20))

    # Filtering / aggregation ----------------------------------------------
    def filter_params(self) -> Tuple[float, float, float]:
        """Return (min_cutoff, beta, d_cutoff)."""
        sec = self._section("filter")
        return float(sec.get("min_cutoff", 0.5)), float(sec.get("beta", 0.08)), float(sec.get("d_cutoff", 1.0))

    def set_filter_params(self, min_cutoff: float, beta: float, d_cutoff: float) -> None:
        self.data["filter"] = {"min_cutoff": float(min_cutoff), "beta": float(beta), "d_cutoff": float(d_cutoff)}

    def heatmap_params(self) -> Tuple[int, int]:
        """Return (resolution_px, kernel_radius_cells)."""
        sec = self._section("attention")
        return int(sec.get("heatmap_resolution", 4)), int(sec.get("heatmap_radius", 4))

    def region_grid(self) -> int:
        return int(self._section("attention").get("region_grid", 4))

    def bucket_sec(self) -> float:
        return float(self._section("attention").get("bucket_sec", 0.5))

    def expected_gaze_hz(self) -> float:
        return float(self._section("attention").get("expected_gaze_hz", 12.0))

    def intensity_window_sec(self) -> float:
        return float(self._section("attention").get("intensity_window_sec", 2.0))
