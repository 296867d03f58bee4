import json
import threading

import pytest

from AttentionTracker.calibration.session import CalibrationPhase
from AttentionTracker.core.events import GazePoint
from AttentionTracker.core.settings import SettingsManager
from AttentionTracker.tracking.calibration import CalibrationModel
from AttentionTracker.tracking.gaze_parser import EyeLandmarks, FaceLandmarks
from AttentionTracker.tracking.pipeline import GazeRecording, Pipeline

# screen = (1280 * ix + 640, 720 * iy + 360) on a 1280x720 rect; frame is 640x360
LINEAR = CalibrationModel((0, 0, 0, 1280.0, 0, 640.0), (0, 0, 0, 0, 720.0, 360.0))


def make_eye(cx, cy, rx, ry, w=0.1, h=0.04):
    return EyeLandmarks(
        outer=(cx - w / 2, cy),
        inner=(cx + w / 2, cy),
        top=(cx, cy - h / 2),
        bottom=(cx, cy + h / 2),
        iris=(cx + rx * w, cy + ry * h),
    )


def face(rx=0.0, ry=0.0, h=0.04):
    return FaceLandmarks(right=make_eye(0.4, 0.5, rx, ry, h=h), left=make_eye(0.6, 0.5, rx, ry, h=h))


def make_pipeline(tmp_path, **overrides):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(overrides), encoding="utf-8")
    return Pipeline(SettingsManager(str(path)))


def test_nothing_recorded_before_calibration(tmp_path):
    p = make_pipeline(tmp_path)
    p.start_recording(now=0.0)
    assert p.on_landmarks(face(), now=0.1) is None
    assert p.gaze_cursor is None
    assert len(p.recording) == 0
    # the sample still reaches the verification buffer
    assert len(p.recent) == 1


def test_records_projected_point(tmp_path):
    p = make_pipeline(tmp_path)
    p.mapper.install(LINEAR)
    p.start_recording("clip.mp4", now=100.0)
    p.set_content_time(1.0)
    pt = p.on_landmarks(face(0.0, 0.0), now=100.5)
    assert pt == GazePoint(timestamp=1.0, x=320, y=180, wall_time=0.5, frame=30)
    assert p.gaze_cursor == (320, 180)
    assert p.recording.snapshot() == (pt,)


def test_blink_and_outlier_frames_are_dropped(tmp_path):
    p = make_pipeline(tmp_path)
    p.mapper.install(LINEAR)
    p.start_recording(now=0.0)
    assert p.on_landmarks(face(h=0.01), now=0.1) is None
    assert p.on_landmarks(face(0.0, 0.0), now=0.2) is not None
    state = p.filter.state
    assert p.on_landmarks(face(0.3, 0.0), now=0.3) is None
    assert p.filter.state == state
    # within threshold of the rejected frame: accepted again
    assert p.on_landmarks(face(0.31, 0.0), now=0.4) is not None
    assert len(p.recording) == 2


def test_points_outside_frame_are_not_recorded(tmp_path):
    p = make_pipeline(tmp_path)
    p.mapper.install(LINEAR)
    p.start_recording(now=0.0)
    assert p.on_landmarks(face(0.6, 0.0), now=0.1) is None
    assert p.gaze_cursor is not None
    assert len(p.recording) == 0


def test_bias_is_applied(tmp_path):
    p = make_pipeline(tmp_path)
    p.mapper.install(LINEAR, bias=(20.0, -10.0))
    p.start_recording(now=0.0)
    pt = p.on_landmarks(face(), now=0.1)
    assert (pt.x, pt.y) == (330, 175)


def test_cancel_resets_filter_and_guard(tmp_path):
    p = make_pipeline(tmp_path)
    p.mapper.install(LINEAR)
    p.start_recording(now=0.0)
    p.on_landmarks(face(0.0, 0.0), now=0.1)
    p.cancel()
    assert p.recording is None
    assert p.filter.state is None
    assert p.guard.previous is None
    assert len(p.recent) == 0
    # a far-away first sample is not treated as a jump after cancel
    p.start_recording(now=1.0)
    pt = p.on_landmarks(face(0.3, 0.2), now=1.1)
    assert pt is not None


def test_stop_recording_returns_session(tmp_path):
    p = make_pipeline(tmp_path)
    p.mapper.install(LINEAR)
    p.start_recording("clip.mp4", now=0.0)
    for i in range(5):
        p.set_content_time(i * 0.1)
        p.on_landmarks(face(), now=i * 0.1)
    session = p.stop_recording(now=2.0)
    assert session.source_name == "clip.mp4"
    assert session.point_count == 5
    assert session.duration == pytest.approx(2.0)
    assert p.recording is None
    with pytest.raises(RuntimeError):
        p.stop_recording()


def test_calibration_through_pipeline(tmp_path):
    p = make_pipeline(
        tmp_path,
        calibration={
            "dwell_ms": 1000,
            "transit_ms": 500,
            "settle_ms": 400,
            "waypoints": [[0.5, 0.5], [0, 0], [1, 0], [1, 1], [0, 1], [0.25, 0.5], [0.75, 0.5]],
        },
        verification={"targets": [[0.75, 0.5]]},
    )
    p.start_calibration(now=0.0)
    t = 0.0
    while p.tick(now=t) in (CalibrationPhase.DWELL, CalibrationPhase.TRANSIT):
        fx, fy = p.calibration.target
        # move the iris gradually so the outlier guard never trips
        p.on_landmarks(face(fx - 0.5, fy - 0.5), now=t)
        t += 0.02
    assert p.calibration.phase is CalibrationPhase.VERIFYING
    # the user keeps looking at the last waypoint, which is also the verification dot
    for _ in range(8):
        p.on_landmarks(face(0.25, 0.0), now=t)
    assert p.confirm_verification() is CalibrationPhase.READY
    assert p.mapper.is_calibrated
    assert p.mapper.bias == pytest.approx((0.0, 0.0), abs=1e-6)


def test_content_rect_from_settings(tmp_path):
    p = make_pipeline(tmp_path, screen={"content_rect": [480, 270, 640, 360]})
    assert p.content_rect != p.rect
    p.mapper.install(LINEAR)
    p.start_recording(now=0.0)
    pt = p.on_landmarks(face(), now=0.1)
    assert (pt.x, pt.y) == (160, 90)


def test_live_intensity_uses_configured_window(tmp_path):
    p = make_pipeline(tmp_path, attention={"intensity_window_sec": 1.0, "expected_gaze_hz": 4.0})
    assert p.live_intensity(now=0.0) == 0
    p.mapper.install(LINEAR)
    p.start_recording(now=10.0)
    p.on_landmarks(face(), now=10.1)
    p.on_landmarks(face(), now=10.2)
    assert p.live_intensity(now=10.5) == 50
    assert p.live_intensity(now=15.0) == 0


def test_set_content_time_rejects_negative(tmp_path):
    p = make_pipeline(tmp_path)
    with pytest.raises(ValueError):
        p.set_content_time(-1.0)


def test_recording_snapshot_is_stable_under_appends():
    rec = GazeRecording(started_at=0.0)

    def writer():
        for i in range(500):
            rec.append(GazePoint(timestamp=i, x=0, y=0, wall_time=i))

    th = threading.Thread(target=writer)
    th.start()
    snaps = [rec.snapshot() for _ in range(50)]
    th.join()
    for s in snaps:
        walls = [p.wall_time for p in s]
        assert walls == sorted(walls)
    assert len(rec) == 500
