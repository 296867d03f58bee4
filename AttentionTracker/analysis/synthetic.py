"""
Synthetic gaze stream for demos and tests.

Points cluster around a few weighted hotspots. The centre hotspot loses weight
over the clip while the others gain, so timelines and trends have something
to show.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np  # type: ignore

from AttentionTracker.core.events import GazePoint


@dataclass(frozen=True)
class Hotspot:
    fx: float  # fraction of frame width
    fy: float
    weight: float
    label: str


DEFAULT_HOTSPOTS: Tuple[Hotspot, ...] = (
    Hotspot(0.5, 0.5, 0.30, "center"),
    Hotspot(0.225, 0.275, 0.25, "face-left"),
    Hotspot(0.75, 0.30, 0.20, "face-right"),
    Hotspot(0.80, 0.80, 0.15, "cta-bottom-right"),
    Hotspot(0.15, 0.85, 0.10, "text-bottom-left"),
)


def _weights(hotspots: Sequence[Hotspot], phase: float) -> np.ndarray:
    w = np.array([
        h.weight * (1.0 - 0.5 * phase) if h.label == "center" else h.weight * (0.7 + 0.6 * phase)
        for h in hotspots
    ], dtype=float)
    return w / w.sum()


def generate_gaze(
    duration_sec: float,
    fps: int = 30,
    frame_size: Tuple[int, int] = (640, 360),
    hotspots: Sequence[Hotspot] = DEFAULT_HOTSPOTS,
    seed: Optional[int] = None,
    with_wall_time: bool = True,
) -> List[GazePoint]:
    """3-7 points per frame scattered around hotspots, clamped to the frame."""
    if duration_sec < 0 or fps <= 0:
        raise ValueError("duration must be non-negative and fps positive")
    if not hotspots:
        raise ValueError("at least one hotspot is required")
    rng = np.random.default_rng(seed)
    w, h = frame_size
    total = int(np.floor(duration_sec * fps))
    out: List[GazePoint] = []
    for f in range(total):
        t = f / float(fps)
        probs = _weights(hotspots, f / float(total))
        for _ in range(int(rng.integers(3, 8))):
            spot = hotspots[int(rng.choice(len(hotspots), p=probs))]
            scatter = 40.0 + rng.random() * 60.0
            angle = rng.random() * 2.0 * np.pi
            dist = abs(rng.standard_normal()) * scatter
            x = min(w - 1.0, max(0.0, spot.fx * w + np.cos(angle) * dist))
            y = min(h - 1.0, max(0.0, spot.fy * h + np.sin(angle) * dist))
            out.append(GazePoint(
                timestamp=t,
                x=int(round(x)),
                y=int(round(y)),
                wall_time=t if with_wall_time else None,
                frame=f,
            ))
    return out
