"""
Post-calibration bias estimation.

Mechanics:
- Show a handful of verification targets one at a time.
- On each confirmation, average the most recent accepted iris samples, map
  them through the freshly fitted model (no bias applied) and record the
  residual e = (target - predicted).
- When every target is confirmed, the bias is the mean residual. With no
  residuals at all the previous bias is left alone.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from AttentionTracker.analysis.error_metrics import ErrorSummary, PointError, compute_point_errors, summarize_errors
from .calibration import CalibrationModel
from .gaze_parser import IrisSample

logger = logging.getLogger(__name__)

SAMPLE_WINDOW = 8
MIN_SAMPLES = 2


@dataclass
class VerificationResult:
    bias: Optional[Tuple[float, float]]
    errors: List[PointError] = field(default_factory=list)

    @property
    def residual_count(self) -> int:
        return len(self.errors)

    @property
    def accuracy(self) -> ErrorSummary:
        """Error of the unbiased model at the verification dots."""
        return summarize_errors(self.errors)


class BiasEstimator:
    def __init__(
        self,
        targets: Sequence[Tuple[float, float]],
        model: Optional[CalibrationModel],
        sample_window: int = SAMPLE_WINDOW,
        min_samples: int = MIN_SAMPLES,
    ) -> None:
        if not targets:
            raise ValueError("at least one verification target is required")
        self.targets = [(float(x), float(y)) for x, y in targets]
        self.model = model
        self.sample_window = max(1, int(sample_window))
        self.min_samples = max(1, int(min_samples))
        self._step = 0
        self._residuals: List[Tuple[float, float]] = []
        self._true: List[Tuple[float, float]] = []
        self._pred: List[Tuple[float, float]] = []

    @property
    def step(self) -> int:
        return self._step

    @property
    def current_target(self) -> Optional[Tuple[float, float]]:
        if self.is_complete:
            return None
        return self.targets[self._step]

    @property
    def is_complete(self) -> bool:
        return self._step >= len(self.targets)

    @property
    def residuals(self) -> List[Tuple[float, float]]:
        return list(self._residuals)

    def confirm(self, recent: Sequence[IrisSample]) -> bool:
        """Record the current target. Returns True once all targets are done."""
        if self.is_complete:
            raise RuntimeError("verification already complete")
        tx, ty = self.targets[self._step]
        samples = list(recent)[-self.sample_window:]
        if len(samples) >= self.min_samples and self.model is not None:
            mx = sum(s.x for s in samples) / len(samples)
            my = sum(s.y for s in samples) / len(samples)
            px, py = self.model.evaluate(mx, my)
            self._residuals.append((tx - px, ty - py))
            self._true.append((tx, ty))
            self._pred.append((px, py))
        else:
            logger.info("Verification target %d skipped: %d samples, model=%s",
                        self._step, len(samples), self.model is not None)
        self._step += 1
        return self.is_complete

    def result(self) -> VerificationResult:
        errors = compute_point_errors(self._true, self._pred)
        if not self._residuals:
            return VerificationResult(bias=None, errors=errors)
        n = float(len(self._residuals))
        dx = sum(r[0] for r in self._residuals) / n
        dy = sum(r[1] for r in self._residuals) / n
        return VerificationResult(bias=(dx, dy), errors=errors)
