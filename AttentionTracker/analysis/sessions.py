"""
Recorded session metadata and multi-viewer aggregation.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from AttentionTracker.core.events import GazePoint


@dataclass(frozen=True)
class RecordedSession:
    id: str
    created_at: float
    source_name: str
    duration: float
    gaze_points: Tuple[GazePoint, ...] = field(default_factory=tuple)

    @classmethod
    def create(cls, source_name: str, duration: float, gaze_points: Sequence[GazePoint]) -> "RecordedSession":
        return cls(
            id=uuid.uuid4().hex,
            created_at=time.time(),
            source_name=source_name,
            duration=float(duration),
            gaze_points=tuple(gaze_points),
        )

    @property
    def point_count(self) -> int:
        return len(self.gaze_points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "source_name": self.source_name,
            "duration": self.duration,
            "gaze_points": [p.to_dict() for p in self.gaze_points],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordedSession":
        try:
            return cls(
                id=str(data["id"]),
                created_at=float(data.get("created_at", 0.0)),
                source_name=str(data.get("source_name", "")),
                duration=float(data.get("duration", 0.0)),
                gaze_points=tuple(GazePoint.from_dict(p) for p in data.get("gaze_points", [])),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed session record: {e}") from e


def aggregate_sessions(sessions: Sequence[RecordedSession]) -> RecordedSession:
    """Combine several viewers of the same content into one session.

    Points are concatenated rather than averaged, so every viewer's gaze is
    kept. Duration is the longest of the inputs.
    """
    if not sessions:
        raise ValueError("no sessions to aggregate")
    if len(sessions) == 1:
        return sessions[0]
    points: List[GazePoint] = []
    for s in sessions:
        points.extend(s.gaze_points)
    first = sessions[0].source_name or "session"
    return RecordedSession(
        id="aggregate-" + "-".join(s.id[:8] for s in sessions),
        created_at=max(s.created_at for s in sessions),
        source_name=f"{first} +{len(sessions) - 1} more",
        duration=max(s.duration for s in sessions),
        gaze_points=tuple(points),
    )
