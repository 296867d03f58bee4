from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from .calibration import MIN_PAIRS, PIVOT_EPS, CalibrationModel, CalibrationPair, fit_polynomial
from .gaze_parser import IrisSample

logger = logging.getLogger(__name__)


class GazeMapper:
    """Holds the active calibration surface plus the verification bias.

    `map()` returns None until a model exists; that is the normal state before
    the first calibration, not an error.
    """

    def __init__(self, min_pairs: int = MIN_PAIRS, pivot_eps: float = PIVOT_EPS) -> None:
        self.min_pairs = int(min_pairs)
        self.pivot_eps = float(pivot_eps)
        self._model: Optional[CalibrationModel] = None
        self._bias: Tuple[float, float] = (0.0, 0.0)

    @property
    def model(self) -> Optional[CalibrationModel]:
        return self._model

    @property
    def bias(self) -> Tuple[float, float]:
        return self._bias

    @property
    def is_calibrated(self) -> bool:
        return self._model is not None

    def reset(self) -> None:
        """Explicit reset: drop both the model and the bias."""
        self._model = None
        self._bias = (0.0, 0.0)

    def fit(self, pairs: Sequence[CalibrationPair]) -> CalibrationModel:
        """Fit and install a new model. On failure the previous model is kept and the error propagates."""
        model = fit_polynomial(pairs, min_pairs=self.min_pairs, eps=self.pivot_eps)
        self._model = model
        return model

    def install(self, model: CalibrationModel, bias: Optional[Tuple[float, float]] = None) -> None:
        self._model = model
        if bias is not None:
            self.set_bias(*bias)

    def set_bias(self, dx: float, dy: float) -> None:
        self._bias = (float(dx), float(dy))
        logger.info("Bias correction set to (%.1f, %.1f) px", self._bias[0], self._bias[1])

    def map_raw(self, sample: IrisSample) -> Optional[Tuple[float, float]]:
        """Model prediction without the bias vector."""
        if self._model is None:
            return None
        return self._model.evaluate(sample.x, sample.y)

    def map(self, sample: IrisSample) -> Optional[Tuple[float, float]]:
        raw = self.map_raw(sample)
        if raw is None:
            return None
        return raw[0] + self._bias[0], raw[1] + self._bias[1]
