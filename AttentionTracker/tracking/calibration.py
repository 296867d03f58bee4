"""
Quadratic calibration surface fitted by least squares.

Maps relative iris coordinates to screen pixels with a 6-term polynomial per
axis:

    screen_x = wx . phi,   screen_y = wy . phi,   phi = [ix^2, iy^2, ix*iy, ix, iy, 1]

The fit accumulates the normal equations (A^T A) w = A^T b over all pairs and
solves the 6x6 system directly with Gaussian elimination and partial pivoting.
A near-zero pivot means the sampled iris positions are degenerate (e.g. all on
a line) and is reported as SingularSystemError instead of returning garbage.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

import numpy as np  # type: ignore

from AttentionTracker.core.errors import InsufficientDataError, SingularSystemError
from .gaze_parser import IrisSample

logger = logging.getLogger(__name__)

N_TERMS = 6
MIN_PAIRS = N_TERMS + 1
PIVOT_EPS = 1e-12


@dataclass(frozen=True)
class CalibrationPair:
    iris: IrisSample
    target: Tuple[float, float]


def features(ix: float, iy: float) -> np.ndarray:
    return np.array([ix * ix, iy * iy, ix * iy, ix, iy, 1.0], dtype=float)


@dataclass(frozen=True)
class CalibrationModel:
    weights_x: Tuple[float, ...]
    weights_y: Tuple[float, ...]

    def evaluate(self, ix: float, iy: float) -> Tuple[float, float]:
        phi = features(ix, iy)
        return float(phi @ np.asarray(self.weights_x)), float(phi @ np.asarray(self.weights_y))

    def to_dict(self) -> dict:
        return {"weights_x": list(self.weights_x), "weights_y": list(self.weights_y)}

    @classmethod
    def from_dict(cls, data: dict) -> "CalibrationModel":
        wx = tuple(float(v) for v in data["weights_x"])
        wy = tuple(float(v) for v in data["weights_y"])
        if len(wx) != N_TERMS or len(wy) != N_TERMS:
            raise ValueError(f"expected {N_TERMS} weights per axis")
        return cls(weights_x=wx, weights_y=wy)


def solve_linear(a: np.ndarray, b: np.ndarray, eps: float = PIVOT_EPS) -> np.ndarray:
    """Solve a . x = b for square `a` by Gaussian elimination with partial pivoting."""
    n = a.shape[0]
    m = np.hstack([np.array(a, dtype=float), np.array(b, dtype=float).reshape(n, 1)])

    for col in range(n):
        # Partial pivot: bring the largest remaining entry of this column up
        pivot_row = col + int(np.argmax(np.abs(m[col:, col])))
        if pivot_row != col:
            m[[col, pivot_row]] = m[[pivot_row, col]]
        pivot = m[col, col]
        if abs(pivot) < eps:
            raise SingularSystemError(col, pivot)
        for row in range(col + 1, n):
            f = m[row, col] / pivot
            m[row, col:] -= f * m[col, col:]

    x = np.zeros(n, dtype=float)
    for i in range(n - 1, -1, -1):
        x[i] = (m[i, n] - m[i, i + 1:n] @ x[i + 1:n]) / m[i, i]
    return x


def normal_equations(pairs: Iterable[CalibrationPair]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    ata = np.zeros((N_TERMS, N_TERMS), dtype=float)
    atbx = np.zeros(N_TERMS, dtype=float)
    atby = np.zeros(N_TERMS, dtype=float)
    for p in pairs:
        phi = features(p.iris.x, p.iris.y)
        ata += np.outer(phi, phi)
        atbx += phi * float(p.target[0])
        atby += phi * float(p.target[1])
    return ata, atbx, atby


def fit_polynomial(
    pairs: Sequence[CalibrationPair],
    min_pairs: int = MIN_PAIRS,
    eps: float = PIVOT_EPS,
) -> CalibrationModel:
    """Fit both axes. Raises InsufficientDataError or SingularSystemError."""
    if len(pairs) < min_pairs:
        raise InsufficientDataError(len(pairs), min_pairs)
    ata, atbx, atby = normal_equations(pairs)
    wx = solve_linear(ata, atbx, eps)
    wy = solve_linear(ata, atby, eps)
    logger.info("Fitted calibration surface from %d pairs", len(pairs))
    return CalibrationModel(weights_x=tuple(float(v) for v in wx), weights_y=tuple(float(v) for v in wy))


def residuals(model: CalibrationModel, pairs: Sequence[CalibrationPair]) -> List[float]:
    """Euclidean fit error (px) for each pair."""
    out: List[float] = []
    for p in pairs:
        px, py = model.evaluate(p.iris.x, p.iris.y)
        out.append(float(np.hypot(px - p.target[0], py - p.target[1])))
    return out
