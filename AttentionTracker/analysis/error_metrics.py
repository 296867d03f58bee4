"""
Verification accuracy: how far calibrated predictions land from the dots
the user confirmed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np  # type: ignore


@dataclass(frozen=True)
class PointError:
    true_xy: Tuple[float, float]
    pred_xy: Tuple[float, float]
    dist_px: float


@dataclass(frozen=True)
class ErrorSummary:
    count: int
    mean_px: float
    max_px: float
    rms_px: float


def compute_point_errors(
    true_points: Sequence[Tuple[float, float]], predicted_points: Sequence[Tuple[float, float]]
) -> List[PointError]:
    if len(true_points) != len(predicted_points):
        raise ValueError("true and predicted lists must have same length")
    if not true_points:
        return []
    d = np.hypot(*(np.asarray(predicted_points, dtype=float) - np.asarray(true_points, dtype=float)).T)
    return [PointError(true_xy=tuple(t), pred_xy=tuple(p), dist_px=float(e))
            for t, p, e in zip(true_points, predicted_points, d)]


def _dists(errors: Sequence[PointError]) -> np.ndarray:
    return np.array([e.dist_px for e in errors], dtype=float)


def compute_mean_error(errors: Sequence[PointError]) -> float:
    return float(_dists(errors).mean()) if errors else 0.0


def compute_max_error(errors: Sequence[PointError]) -> float:
    return float(_dists(errors).max()) if errors else 0.0


def compute_rms_error(errors: Sequence[PointError]) -> float:
    return float(np.sqrt(np.mean(_dists(errors) ** 2))) if errors else 0.0


def summarize_errors(errors: Sequence[PointError]) -> ErrorSummary:
    return ErrorSummary(
        count=len(errors),
        mean_px=compute_mean_error(errors),
        max_px=compute_max_error(errors),
        rms_px=compute_rms_error(errors),
    )
