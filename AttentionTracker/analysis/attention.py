"""
Spatial and temporal attention statistics over a recorded gaze stream.

All functions are pure: they take the (append-only) point sequence plus a
query window or bucket width and can be recomputed at any time as the
recording grows.

Time base: "timestamp" follows content playback (pauses and seeks),
"wall_time" follows real time since the recording started. Timelines default
to wall time so paused playback does not read as zero attention.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np  # type: ignore

from AttentionTracker.core.events import GazePoint

HEATMAP_RESOLUTION = 4
HEATMAP_RADIUS = 4
REGION_GRID = 4
BUCKET_SEC = 0.5
EXPECTED_GAZE_HZ = 12.0

_ROW_NAMES = ["top", "mid-upper", "mid-lower", "bottom"]
_COL_NAMES = ["left", "center-left", "center-right", "right"]
_ROW_SHORT = ["T", "MU", "ML", "B"]
_COL_SHORT = ["L", "CL", "CR", "R"]

QUADRANTS = ("Top-Left", "Top-Right", "Bottom-Left", "Bottom-Right")


def window_around(center: float, width: float) -> Tuple[float, float]:
    return center - width / 2.0, center + width / 2.0


def preferred_time_base(points: Iterable[GazePoint]) -> str:
    return "wall_time" if any(p.wall_time is not None for p in points) else "timestamp"


def _in_window(points: Iterable[GazePoint], start: float, end: float, time_base: str) -> List[GazePoint]:
    out = []
    for p in points:
        t = p.time(time_base)
        if t is not None and start <= t <= end:
            out.append(p)
    return out


# Heatmap ------------------------------------------------------------------

@dataclass
class Heatmap:
    grid: np.ndarray  # (rows, cols), normalized so the max cell is 1.0
    resolution: int
    count: int

    @property
    def shape(self) -> Tuple[int, int]:
        return self.grid.shape  # type: ignore[return-value]


def gaussian_kernel(radius: int) -> np.ndarray:
    r = np.arange(-radius, radius + 1, dtype=float)
    d2 = r[None, :] ** 2 + r[:, None] ** 2
    sigma = max(radius / 2.0, 1e-6)
    return np.exp(-d2 / (2.0 * sigma * sigma))


def compute_heatmap(
    points: Sequence[GazePoint],
    window_start: float,
    window_end: float,
    frame_size: Tuple[int, int],
    resolution: int = HEATMAP_RESOLUTION,
    radius: int = HEATMAP_RADIUS,
    time_base: str = "timestamp",
) -> Heatmap:
    """Gaussian-splat density of the points in [window_start, window_end].

    The grid is divided by its own maximum; an empty window yields all zeros.
    """
    if resolution <= 0 or radius < 0:
        raise ValueError("resolution must be positive and radius non-negative")
    cols = int(math.ceil(frame_size[0] / resolution))
    rows = int(math.ceil(frame_size[1] / resolution))
    grid = np.zeros((rows, cols), dtype=float)
    kernel = gaussian_kernel(radius)

    count = 0
    for p in _in_window(points, window_start, window_end, time_base):
        gx = int(math.floor(p.x / resolution))
        gy = int(math.floor(p.y / resolution))
        if not (0 <= gx < cols and 0 <= gy < rows):
            continue
        x0, x1 = max(0, gx - radius), min(cols, gx + radius + 1)
        y0, y1 = max(0, gy - radius), min(rows, gy + radius + 1)
        grid[y0:y1, x0:x1] += kernel[
            y0 - (gy - radius):y1 - (gy - radius),
            x0 - (gx - radius):x1 - (gx - radius),
        ]
        count += 1

    peak = float(grid.max()) if grid.size else 0.0
    if peak > 0.0:
        grid /= peak
    return Heatmap(grid=grid, resolution=resolution, count=count)


# Regions ------------------------------------------------------------------

@dataclass(frozen=True)
class RegionAttention:
    label: str
    short: str
    row: int
    col: int
    count: int
    attention: float  # percent of points in the window


def region_label(row: int, col: int, grid_size: int) -> Tuple[str, str]:
    if grid_size == len(_ROW_NAMES):
        return f"{_ROW_NAMES[row]}-{_COL_NAMES[col]}", f"{_ROW_SHORT[row]}{_COL_SHORT[col]}"
    i = row * grid_size + col
    return f"region-{i}", f"R{i}"


def compute_region_attention(
    points: Sequence[GazePoint],
    window_start: float,
    window_end: float,
    frame_size: Tuple[int, int],
    grid_size: int = REGION_GRID,
    time_base: str = "timestamp",
) -> List[RegionAttention]:
    """Share of points per cell of a grid_size x grid_size partition, row-major.

    Attentions sum to 100 when the window holds any point, else all are 0.
    """
    if grid_size <= 0:
        raise ValueError("grid_size must be positive")
    cell_w = frame_size[0] / grid_size
    cell_h = frame_size[1] / grid_size
    counts = np.zeros((grid_size, grid_size), dtype=int)
    for p in _in_window(points, window_start, window_end, time_base):
        gx = min(grid_size - 1, max(0, int(math.floor(p.x / cell_w))))
        gy = min(grid_size - 1, max(0, int(math.floor(p.y / cell_h))))
        counts[gy, gx] += 1
    total = int(counts.sum())

    out: List[RegionAttention] = []
    for row in range(grid_size):
        for col in range(grid_size):
            c = int(counts[row, col])
            label, short = region_label(row, col, grid_size)
            out.append(RegionAttention(
                label=label,
                short=short,
                row=row,
                col=col,
                count=c,
                attention=(c / total) * 100.0 if total > 0 else 0.0,
            ))
    return out


def top_regions(regions: Sequence[RegionAttention], k: Optional[int] = None) -> List[RegionAttention]:
    ranked = sorted(regions, key=lambda r: r.attention, reverse=True)
    return ranked if k is None else ranked[:k]


def compute_quadrants(regions: Sequence[RegionAttention], grid_size: int = REGION_GRID) -> Dict[str, float]:
    """Roll cells up into the four grid_size/2 x grid_size/2 blocks."""
    half = grid_size / 2.0
    q = {name: 0.0 for name in QUADRANTS}
    for r in regions:
        key = f"{'Top' if r.row < half else 'Bottom'}-{'Left' if r.col < half else 'Right'}"
        q[key] += r.attention
    return q


def center_share(regions: Sequence[RegionAttention], grid_size: int = REGION_GRID) -> float:
    """Attention in the inner cells (inner 2x2 of a 4x4 grid)."""
    lo, hi = 1, grid_size - 2
    return float(sum(r.attention for r in regions if lo <= r.row <= hi and lo <= r.col <= hi))


# Timeline -----------------------------------------------------------------

@dataclass(frozen=True)
class TimelineBucket:
    time: float
    count: int
    intensity: int  # 0..100


def _percent(count: float, expected: float) -> int:
    if expected <= 0:
        return 0
    return int(min(100, math.floor(count / expected * 100.0 + 0.5)))


def compute_timeline(
    points: Sequence[GazePoint],
    bucket_sec: float = BUCKET_SEC,
    expected_hz: float = EXPECTED_GAZE_HZ,
    time_base: str = "wall_time",
    duration: Optional[float] = None,
) -> List[TimelineBucket]:
    """Fixed-width buckets from 0 through the last point (or `duration`).

    Intensity compares each bucket's count with expected_hz * bucket_sec and
    is capped at 100.
    """
    if bucket_sec <= 0:
        raise ValueError("bucket_sec must be positive")
    times = [t for t in (p.time(time_base) for p in points) if t is not None and t >= 0]
    if not times:
        return []
    end = max(max(times), duration or 0.0)
    n = int(math.floor(end / bucket_sec)) + 1
    idx = np.floor(np.asarray(times, dtype=float) / bucket_sec).astype(int)
    counts = np.bincount(idx, minlength=n)[:n]
    expected = expected_hz * bucket_sec
    return [
        TimelineBucket(time=round(i * bucket_sec, 3), count=int(c), intensity=_percent(c, expected))
        for i, c in enumerate(counts)
    ]


def live_intensity(
    points: Sequence[GazePoint],
    now_wall: float,
    window_sec: float = 2.0,
    expected_hz: float = EXPECTED_GAZE_HZ,
) -> int:
    """Capped intensity over the trailing wall-clock window ending at now_wall."""
    count = len(_in_window(points, now_wall - window_sec, now_wall, "wall_time"))
    return _percent(count, expected_hz * window_sec)
