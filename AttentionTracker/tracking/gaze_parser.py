"""
Relative iris position from eye-region landmarks.

Each eye contributes four socket landmarks (outer corner, inner corner, upper
lid, lower lid) plus its iris center, all in the provider's normalized
coordinate space. The iris is expressed relative to the socket center and
scaled by socket width/height, which isolates eye rotation from head motion:

    rel = (iris - center) / size        (per axis, roughly -0.5..+0.5)

Frames where either eye is squinting/blinking are dropped, and single-frame
teleports are rejected by OutlierGuard before anything downstream sees them.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from AttentionTracker.utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

BLINK_RATIO = 0.15
MIN_EXTENT = 1e-4
OUTLIER_THRESHOLD = 0.2


@dataclass(frozen=True)
class IrisSample:
    x: float
    y: float

    def distance_to(self, other: "IrisSample") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class EyeLandmarks:
    outer: Point
    inner: Point
    top: Point
    bottom: Point
    iris: Point

    def extent(self, min_extent: float = MIN_EXTENT) -> Tuple[float, float]:
        w = max(min_extent, abs(self.outer[0] - self.inner[0]))
        h = max(min_extent, abs(self.top[1] - self.bottom[1]))
        return w, h

    def center(self) -> Point:
        return (self.outer[0] + self.inner[0]) / 2.0, (self.top[1] + self.bottom[1]) / 2.0


@dataclass(frozen=True)
class FaceLandmarks:
    right: EyeLandmarks
    left: EyeLandmarks


class IrisNormalizer:
    def __init__(self, blink_ratio: float = BLINK_RATIO, min_extent: float = MIN_EXTENT) -> None:
        self.blink_ratio = float(blink_ratio)
        self.min_extent = float(min_extent)
        self._blinks = ThrottledLogger(logger)

    def relative(self, eye: EyeLandmarks) -> Optional[Point]:
        """Relative iris position for one eye, or None when the lid occludes it."""
        w, h = eye.extent(self.min_extent)
        if (h / w) < self.blink_ratio:
            return None
        cx, cy = eye.center()
        return (eye.iris[0] - cx) / w, (eye.iris[1] - cy) / h

    def process(self, face: FaceLandmarks) -> Optional[IrisSample]:
        r = self.relative(face.right)
        l = self.relative(face.left)
        if r is None or l is None:
            self._blinks.debug("Dropped blink/squint frame")
            return None
        return IrisSample(x=(r[0] + l[0]) / 2.0, y=(r[1] + l[1]) / 2.0)


class OutlierGuard:
    """Rejects inter-frame jumps larger than `threshold` in normalized units.

    A rejected sample still becomes the new reference, so a second consistent
    frame at the new location is accepted instead of being rejected forever.
    """

    def __init__(self, threshold: float = OUTLIER_THRESHOLD) -> None:
        self.threshold = float(threshold)
        self._prev: Optional[IrisSample] = None
        self._jumps = ThrottledLogger(logger)

    @property
    def previous(self) -> Optional[IrisSample]:
        return self._prev

    def reset(self) -> None:
        self._prev = None

    def accept(self, sample: IrisSample) -> bool:
        prev = self._prev
        self._prev = sample
        if prev is not None and sample.distance_to(prev) > self.threshold:
            self._jumps.debug("Rejected iris jump of %.3f", sample.distance_to(prev))
            return False
        return True
