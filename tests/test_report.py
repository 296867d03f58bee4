import json

import pytest

from AttentionTracker.analysis.attention import TimelineBucket
from AttentionTracker.analysis.report import (
    attention_trend,
    format_summary,
    gaze_spread,
    load_session,
    summarize_session,
)
from AttentionTracker.analysis.sessions import RecordedSession, aggregate_sessions
from AttentionTracker.analysis.synthetic import generate_gaze
from AttentionTracker.core.events import GazePoint


def bucket(i, v):
    return TimelineBucket(time=i * 0.5, count=0, intensity=v)


def test_trend_bands():
    assert attention_trend([bucket(i, v) for i, v in enumerate([20, 20, 50, 50, 80, 80])]) == "increasing"
    assert attention_trend([bucket(i, v) for i, v in enumerate([80, 80, 50, 50, 20, 20])]) == "decreasing"
    assert attention_trend([bucket(i, v) for i, v in enumerate([50, 50, 0, 0, 54, 54])]) == "stable"
    assert attention_trend([]) == "stable"


def test_gaze_spread_uses_sample_std():
    pts = [GazePoint(0.0, 0, 0), GazePoint(0.0, 10, 20)]
    mean, std = gaze_spread(pts, (640, 360))
    assert mean == (5.0, 10.0)
    assert std == pytest.approx((50 ** 0.5, 200 ** 0.5))
    assert gaze_spread([], (640, 360)) == ((320.0, 180.0), (0.0, 0.0))


def test_summary_of_synthetic_session():
    session = RecordedSession.create("synthetic", 6.0, generate_gaze(6.0, seed=11))
    s = summarize_session(session)
    assert s.total_points == session.point_count
    assert s.time_base == "wall_time"
    assert len(s.timeline) == 12
    assert sum(s.quadrants.values()) == pytest.approx(100.0)
    assert 0.0 <= s.center_pct <= 100.0
    assert s.hotspot is not None
    assert s.hotspot.attention == max(r.attention for r in s.regions)
    # 3-7 points per 1/30 s frame is far above 12 Hz
    assert s.avg_intensity == 100
    assert s.high_attention_pct == 100
    assert s.trend == "stable"
    text = format_summary(s, session.source_name)
    assert "Hotspot" in text and "synthetic" in text


def test_blind_spot_reported():
    pts = [GazePoint(float(i) / 10, 320, 180, wall_time=float(i) / 10) for i in range(100)]
    s = summarize_session(RecordedSession.create("c", 10.0, pts))
    assert s.hotspot.short == "MLCR"
    assert s.blind_spot is not None
    assert s.blind_spot.attention == 0.0
    assert s.center_pct == pytest.approx(100.0)


def test_empty_session():
    s = summarize_session(RecordedSession.create("empty", 3.0, []))
    assert s.total_points == 0
    assert s.timeline == []
    assert s.hotspot is None
    assert s.peak is None
    assert all(v == 0.0 for v in s.quadrants.values())


def test_load_session(tmp_path):
    session = RecordedSession.create("clip", 1.0, [GazePoint(0.5, 1, 2, wall_time=0.5, frame=15)])
    path = tmp_path / "s.json"
    path.write_text(json.dumps(session.to_dict()), encoding="utf-8")
    assert load_session(str(path)) == session


class TestSessions:
    def test_legacy_wall_time_key(self):
        s = RecordedSession.from_dict({
            "id": "abc",
            "duration": 2,
            "gaze_points": [{"timestamp": 1.0, "wallTime": 1.5, "x": 3, "y": 4}],
        })
        assert s.gaze_points[0].wall_time == 1.5
        assert s.gaze_points[0].frame == 0

    def test_malformed_record(self):
        with pytest.raises(ValueError):
            RecordedSession.from_dict({"gaze_points": []})
        with pytest.raises(ValueError):
            RecordedSession.from_dict({"id": "x", "gaze_points": [{"x": 1}]})

    def test_aggregate_concatenates(self):
        a = RecordedSession.create("clip.mp4", 10.0, [GazePoint(0.0, 1, 1)] * 3)
        b = RecordedSession.create("clip.mp4", 12.0, [GazePoint(0.0, 2, 2)] * 2)
        c = RecordedSession.create("clip.mp4", 8.0, [])
        agg = aggregate_sessions([a, b, c])
        assert agg.point_count == 5
        assert agg.duration == 12.0
        assert agg.source_name == "clip.mp4 +2 more"

    def test_aggregate_single_and_empty(self):
        a = RecordedSession.create("x", 1.0, [])
        assert aggregate_sessions([a]) is a
        with pytest.raises(ValueError):
            aggregate_sessions([])
