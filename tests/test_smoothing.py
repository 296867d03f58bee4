import math

import pytest

from AttentionTracker.tracking.smoothing import AdaptiveLowPass, smoothing_factor

DT = 1.0 / 30.0


def steps_to_settle(f, start, target, tol=0.1, limit=500):
    f.apply((start, 0.0), 0.0)
    for i in range(1, limit):
        x, _ = f.apply((target, 0.0), i * DT)
        if abs(x - target) <= tol * abs(target - start):
            return i
    return limit


def test_first_sample_passes_through():
    f = AdaptiveLowPass()
    assert f.apply((12.5, -3.0), 1.0) == (12.5, -3.0)
    assert f.state.dx == 0.0 and f.state.dy == 0.0


def test_smoothing_factor_range():
    a = smoothing_factor(1.0, DT)
    assert 0.0 < a < 1.0
    assert smoothing_factor(1000.0, DT) > smoothing_factor(0.5, DT)


def test_constant_input_converges():
    f = AdaptiveLowPass()
    f.apply((0.0, 0.0), 0.0)
    for i in range(1, 2000):
        out = f.apply((100.0, 50.0), i * DT)
    assert out == pytest.approx((100.0, 50.0), abs=1e-3)
    assert f.cutoff() == pytest.approx(0.5, abs=1e-3)


def test_large_steps_settle_faster_than_small():
    big = steps_to_settle(AdaptiveLowPass(), 0.0, 500.0)
    small = steps_to_settle(AdaptiveLowPass(), 0.0, 5.0)
    assert big <= 2
    assert big < small


def test_beta_speeds_up_tracking():
    adaptive = steps_to_settle(AdaptiveLowPass(beta=0.08), 0.0, 300.0)
    fixed = steps_to_settle(AdaptiveLowPass(beta=0.0), 0.0, 300.0)
    assert adaptive < fixed


def test_reset_drops_velocity():
    f = AdaptiveLowPass()
    f.apply((0.0, 0.0), 0.0)
    f.apply((400.0, 0.0), DT)
    assert f.cutoff() > 1.0
    f.reset()
    assert f.state is None
    assert f.apply((7.0, 8.0), 5.0) == (7.0, 8.0)


def test_zero_dt_is_floored():
    f = AdaptiveLowPass()
    f.apply((0.0, 0.0), 1.0)
    x, y = f.apply((10.0, 10.0), 1.0)
    assert math.isfinite(x) and math.isfinite(y)
