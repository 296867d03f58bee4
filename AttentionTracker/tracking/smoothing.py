from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple


# Default filter constants
MIN_CUTOFF_HZ = 0.5
BETA = 0.08
D_CUTOFF_HZ = 1.0
MIN_DT = 1e-4


def smoothing_factor(cutoff_hz: float, dt: float) -> float:
    return 1.0 / (1.0 + 1.0 / (2.0 * math.pi * cutoff_hz * dt))


@dataclass(frozen=True)
class FilterState:
    x: float
    dx: float
    y: float
    dy: float
    t: float


class AdaptiveLowPass:
    """Speed-adaptive one-pole low-pass filter for 2D points.

    Parameters:
    - min_cutoff: cutoff (Hz) while the gaze is still; lower = more smoothing
    - beta: how fast the cutoff rises with speed (px/s)
    - d_cutoff: cutoff (Hz) for the velocity estimate itself

    Smooths heavily during fixations and opens up during saccades so fast
    moves are not lagged. Must be reset whenever tracking restarts.
    """

    def __init__(self, min_cutoff: float = MIN_CUTOFF_HZ, beta: float = BETA, d_cutoff: float = D_CUTOFF_HZ) -> None:
        self.min_cutoff = float(min_cutoff)
        self.beta = float(beta)
        self.d_cutoff = float(d_cutoff)
        self._state: Optional[FilterState] = None

    @property
    def state(self) -> Optional[FilterState]:
        return self._state

    def reset(self) -> None:
        self._state = None

    def cutoff(self) -> float:
        """Current adaptive cutoff frequency."""
        if self._state is None:
            return self.min_cutoff
        return self.min_cutoff + self.beta * math.hypot(self._state.dx, self._state.dy)

    def apply(self, xy: Tuple[float, float], t: float) -> Tuple[float, float]:
        x0 = float(xy[0]); y0 = float(xy[1])
        prev = self._state
        if prev is None:
            self._state = FilterState(x=x0, dx=0.0, y=y0, dy=0.0, t=float(t))
            return (x0, y0)
        dt = max(float(t) - prev.t, MIN_DT)
        # Filtered derivative
        ad = smoothing_factor(self.d_cutoff, dt)
        dx = ad * ((x0 - prev.x) / dt) + (1.0 - ad) * prev.dx
        dy = ad * ((y0 - prev.y) / dt) + (1.0 - ad) * prev.dy
        # Cutoff rises with speed
        fc = self.min_cutoff + self.beta * math.hypot(dx, dy)
        a = smoothing_factor(fc, dt)
        ox = a * x0 + (1.0 - a) * prev.x
        oy = a * y0 + (1.0 - a) * prev.y
        self._state = FilterState(x=ox, dx=dx, y=oy, dy=dy, t=float(t))
        return (ox, oy)
