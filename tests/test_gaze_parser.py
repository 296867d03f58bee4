import pytest

from AttentionTracker.tracking.gaze_parser import (
    EyeLandmarks,
    FaceLandmarks,
    IrisNormalizer,
    IrisSample,
    OutlierGuard,
)


def make_eye(cx, cy, rx=0.0, ry=0.0, w=0.1, h=0.04):
    return EyeLandmarks(
        outer=(cx - w / 2, cy),
        inner=(cx + w / 2, cy),
        top=(cx, cy - h / 2),
        bottom=(cx, cy + h / 2),
        iris=(cx + rx * w, cy + ry * h),
    )


def make_face(rx=0.0, ry=0.0, h=0.04):
    return FaceLandmarks(right=make_eye(0.4, 0.5, rx, ry, h=h), left=make_eye(0.6, 0.5, rx, ry, h=h))


def test_relative_position_is_scaled_by_socket_size():
    n = IrisNormalizer()
    x, y = n.relative(make_eye(0.4, 0.5, rx=0.2, ry=-0.1))
    assert x == pytest.approx(0.2)
    assert y == pytest.approx(-0.1)


def test_process_averages_both_eyes():
    n = IrisNormalizer()
    face = FaceLandmarks(right=make_eye(0.4, 0.5, rx=0.2, ry=0.0), left=make_eye(0.6, 0.5, rx=0.0, ry=0.2))
    s = n.process(face)
    assert s is not None
    assert s.x == pytest.approx(0.1)
    assert s.y == pytest.approx(0.1)


def test_blink_drops_whole_frame():
    n = IrisNormalizer()
    # h/w = 0.01/0.1 = 0.1 < 0.15 on one eye only
    face = FaceLandmarks(right=make_eye(0.4, 0.5, h=0.01), left=make_eye(0.6, 0.5))
    assert n.process(face) is None
    assert n.process(make_face(h=0.02)) is not None  # 0.2 is open enough


def test_degenerate_socket_does_not_divide_by_zero():
    n = IrisNormalizer(blink_ratio=0.0)
    eye = EyeLandmarks(outer=(0.5, 0.5), inner=(0.5, 0.5), top=(0.5, 0.5), bottom=(0.5, 0.5), iris=(0.5, 0.5))
    assert n.relative(eye) == (0.0, 0.0)


def test_outlier_guard_rejects_jump_but_remembers_it():
    g = OutlierGuard(threshold=0.2)
    assert g.accept(IrisSample(0.0, 0.0))
    assert not g.accept(IrisSample(0.3, 0.0))
    assert g.previous == IrisSample(0.3, 0.0)
    # a consistent frame at the new location is accepted
    assert g.accept(IrisSample(0.31, 0.0))


def test_outlier_guard_two_consecutive_jumps_both_rejected():
    g = OutlierGuard()
    g.accept(IrisSample(0.0, 0.0))
    assert not g.accept(IrisSample(0.25, 0.0))
    assert not g.accept(IrisSample(-0.25, 0.0))
    assert g.accept(IrisSample(-0.2, 0.0))


def test_outlier_guard_reset_forgets_history():
    g = OutlierGuard()
    g.accept(IrisSample(0.0, 0.0))
    g.reset()
    assert g.previous is None
    assert g.accept(IrisSample(0.45, 0.45))
