from __future__ import annotations

import json
import math
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from AttentionTracker.core.events import GazePoint
from .attention import (
    BUCKET_SEC,
    EXPECTED_GAZE_HZ,
    REGION_GRID,
    RegionAttention,
    TimelineBucket,
    center_share,
    compute_quadrants,
    compute_region_attention,
    compute_timeline,
    preferred_time_base,
    top_regions,
)
from .sessions import RecordedSession

HIGH_ATTENTION_PCT = 70
TREND_BAND = 5
BLIND_SPOT_PCT = 1.5


@dataclass
class SessionSummary:
    total_points: int
    time_base: str
    timeline: List[TimelineBucket]
    avg_intensity: int
    peak: Optional[TimelineBucket]
    low: Optional[TimelineBucket]
    high_attention_pct: int
    center_pct: float
    quadrants: Dict[str, float]
    mean_xy: Tuple[float, float]
    std_xy: Tuple[float, float]
    dispersion: float
    trend: str
    hotspot: Optional[RegionAttention]
    blind_spot: Optional[RegionAttention]
    regions: List[RegionAttention] = field(default_factory=list)


def _avg(values: Sequence[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def attention_trend(timeline: Sequence[TimelineBucket], band: float = TREND_BAND) -> str:
    """Compare mean intensity of the first and last thirds of the timeline."""
    if not timeline:
        return "stable"
    third = len(timeline) // 3 or 1
    first = _avg([b.intensity for b in timeline[:third]])
    last = _avg([b.intensity for b in timeline[-third:]])
    if last > first + band:
        return "increasing"
    if last < first - band:
        return "decreasing"
    return "stable"


def gaze_spread(points: Sequence[GazePoint], frame_size: Tuple[int, int]) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Mean position and sample standard deviation (n-1) per axis."""
    n = len(points)
    if n == 0:
        return (frame_size[0] / 2.0, frame_size[1] / 2.0), (0.0, 0.0)
    mx = sum(p.x for p in points) / n
    my = sum(p.y for p in points) / n
    if n < 2:
        return (mx, my), (0.0, 0.0)
    sx = math.sqrt(sum((p.x - mx) ** 2 for p in points) / (n - 1))
    sy = math.sqrt(sum((p.y - my) ** 2 for p in points) / (n - 1))
    return (mx, my), (sx, sy)


def summarize_session(
    session: RecordedSession,
    frame_size: Tuple[int, int] = (640, 360),
    bucket_sec: float = BUCKET_SEC,
    expected_hz: float = EXPECTED_GAZE_HZ,
    grid_size: int = REGION_GRID,
) -> SessionSummary:
    points = session.gaze_points
    time_base = preferred_time_base(points)
    duration = session.duration if time_base == "timestamp" else None
    timeline = compute_timeline(points, bucket_sec, expected_hz, time_base=time_base, duration=duration)

    end = max([p.time(time_base) or 0.0 for p in points] + [session.duration])
    regions = compute_region_attention(points, 0.0, end, frame_size, grid_size, time_base=time_base)
    ranked = top_regions(regions)
    hotspot = ranked[0] if points else None
    blind = ranked[-1] if points and ranked[-1].attention < BLIND_SPOT_PCT else None

    intensities = [b.intensity for b in timeline]
    mean_xy, std_xy = gaze_spread(points, frame_size)
    return SessionSummary(
        total_points=len(points),
        time_base=time_base,
        timeline=timeline,
        avg_intensity=int(round(_avg(intensities))),
        peak=max(timeline, key=lambda b: b.intensity) if timeline else None,
        low=min(timeline, key=lambda b: b.intensity) if timeline else None,
        high_attention_pct=int(round(100.0 * sum(1 for v in intensities if v > HIGH_ATTENTION_PCT) / len(timeline))) if timeline else 0,
        center_pct=center_share(regions, grid_size),
        quadrants=compute_quadrants(regions, grid_size),
        mean_xy=mean_xy,
        std_xy=std_xy,
        dispersion=math.hypot(*std_xy),
        trend=attention_trend(timeline),
        hotspot=hotspot,
        blind_spot=blind,
        regions=regions,
    )


def format_summary(s: SessionSummary, source_name: str = "") -> str:
    lines = []
    if source_name:
        lines.append(f"Source:        {source_name}")
    lines.append(f"Gaze points:   {s.total_points} ({s.time_base})")
    lines.append(f"Avg intensity: {s.avg_intensity}%")
    if s.peak is not None and s.low is not None:
        lines.append(f"Peak:          {s.peak.intensity}% at {s.peak.time:.1f}s")
        lines.append(f"Low:           {s.low.intensity}% at {s.low.time:.1f}s")
    lines.append(f"High attn:     {s.high_attention_pct}% of buckets > {HIGH_ATTENTION_PCT}%")
    lines.append(f"Centre share:  {s.center_pct:.1f}%")
    lines.append("Quadrants:     " + ", ".join(f"{k} {v:.1f}%" for k, v in s.quadrants.items()))
    lines.append(f"Mean gaze:     ({s.mean_xy[0]:.0f}, {s.mean_xy[1]:.0f}) px")
    lines.append(f"Std dev:       ({s.std_xy[0]:.0f}, {s.std_xy[1]:.0f}) px, dispersion {s.dispersion:.0f} px")
    lines.append(f"Trend:         {s.trend}")
    if s.hotspot is not None:
        lines.append(f"Hotspot:       {s.hotspot.label} ({s.hotspot.attention:.1f}%)")
    if s.blind_spot is not None:
        lines.append(f"Blind spot:    {s.blind_spot.label} ({s.blind_spot.attention:.1f}%)")
    return "\n".join(lines)


def load_session(path: str) -> RecordedSession:
    with open(path, "r", encoding="utf-8") as f:
        return RecordedSession.from_dict(json.load(f))


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m AttentionTracker.analysis.report <session.json>")
        raise SystemExit(2)
    sess = load_session(sys.argv[1])
    print(format_summary(summarize_session(sess), sess.source_name))
