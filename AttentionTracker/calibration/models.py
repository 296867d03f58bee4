"""
Calibration data models.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ScreenRect:
    """Screen-space rectangle the calibration targets are drawn in (px)."""
    left: float
    top: float
    width: float
    height: float

    def to_screen(self, fx: float, fy: float) -> Tuple[float, float]:
        return self.left + fx * self.width, self.top + fy * self.height

    def to_frame(self, sx: float, sy: float, frame_size: Tuple[int, int]) -> Tuple[float, float]:
        """Project a screen point into content-frame pixels."""
        fw, fh = frame_size
        return (sx - self.left) * fw / self.width, (sy - self.top) * fh / self.height


@dataclass(frozen=True)
class CalibrationTiming:
    dwell_s: float = 1.4
    transit_s: float = 1.2
    settle_s: float = 0.4

    def __post_init__(self) -> None:
        if self.dwell_s <= 0 or self.transit_s < 0:
            raise ValueError("dwell must be positive and transit non-negative")
        if not (0.0 <= self.settle_s < self.dwell_s):
            raise ValueError("settle must be shorter than dwell")
