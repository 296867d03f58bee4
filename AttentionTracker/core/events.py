"""
Event dataclasses produced by the tracking pipeline.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class GazePoint:
    """One filtered, calibrated gaze observation in content-frame pixels.

    `timestamp` is content time (pauses/seeks with playback); `wall_time` is
    seconds since the recording started and keeps advancing regardless.
    """
    timestamp: float
    x: int
    y: int
    wall_time: Optional[float] = None
    frame: int = 0

    def time(self, time_base: str) -> Optional[float]:
        if time_base == "timestamp":
            return self.timestamp
        if time_base == "wall_time":
            return self.wall_time
        raise ValueError(f"unknown time base: {time_base!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "wall_time": self.wall_time,
            "x": self.x,
            "y": self.y,
            "frame": self.frame,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GazePoint":
        wall = data.get("wall_time", data.get("wallTime"))
        return cls(
            timestamp=float(data["timestamp"]),
            x=int(data["x"]),
            y=int(data["y"]),
            wall_time=float(wall) if wall is not None else None,
            frame=int(data.get("frame", 0)),
        )
