"""
Guided moving-dot calibration.

Phases per waypoint:
  DWELL    the dot is stationary; after the settle period every accepted iris
           sample is paired with the dot's screen position
  TRANSIT  the dot eases to the next waypoint; nothing is recorded

After the last dwell the pairs are fitted (FITTING). A successful fit moves to
VERIFYING, where the user confirms a few targets and the bias vector is
estimated; on completion the new model and bias are installed together
(READY). A failed fit ends in FAILED with the previous model untouched.
`cancel()` returns to IDLE from any phase and discards the pairs.

Timing is driven by `tick(now)` from a display-rate loop; `ingest(sample)`
runs from the landmark callback. The only state they share is `_armed`,
which is either None or the screen point samples should be paired with, and
is read exactly once per ingested sample.
"""
from __future__ import annotations

import logging
import math
import time
from enum import Enum, auto
from typing import List, Optional, Sequence, Tuple

from AttentionTracker.core.errors import CalibrationError
from AttentionTracker.tracking.calibration import CalibrationModel, CalibrationPair, fit_polynomial
from AttentionTracker.tracking.drift_corrector import MIN_SAMPLES, SAMPLE_WINDOW, BiasEstimator, VerificationResult
from AttentionTracker.tracking.gaze_parser import IrisSample
from AttentionTracker.tracking.mapping import GazeMapper
from .models import CalibrationTiming, ScreenRect

logger = logging.getLogger(__name__)


class CalibrationPhase(Enum):
    IDLE = auto()
    DWELL = auto()
    TRANSIT = auto()
    FITTING = auto()
    VERIFYING = auto()
    READY = auto()
    FAILED = auto()


def ease_in_out(t: float) -> float:
    """Cosine ease: zero slope at both ends."""
    t = max(0.0, min(1.0, t))
    return -(math.cos(math.pi * t) - 1.0) / 2.0


class CalibrationSession:
    def __init__(
        self,
        mapper: GazeMapper,
        waypoints: Sequence[Tuple[float, float]],
        verify_targets: Sequence[Tuple[float, float]],
        rect: ScreenRect,
        timing: CalibrationTiming = CalibrationTiming(),
        sample_window: int = SAMPLE_WINDOW,
        min_samples: int = MIN_SAMPLES,
    ) -> None:
        if not waypoints:
            raise ValueError("at least one calibration waypoint is required")
        self.mapper = mapper
        self.waypoints = [(float(x), float(y)) for x, y in waypoints]
        self.verify_targets = [(float(x), float(y)) for x, y in verify_targets]
        self.rect = rect
        self.timing = timing
        self.sample_window = int(sample_window)
        self.min_samples = int(min_samples)

        self.phase = CalibrationPhase.IDLE
        self.last_error: Optional[CalibrationError] = None
        self.verification: Optional[VerificationResult] = None
        self.fitted_pairs = 0
        self._pairs: List[CalibrationPair] = []
        self._armed: Optional[Tuple[float, float]] = None
        self._pos: Tuple[float, float] = self.waypoints[0]
        self._wp = 0
        self._phase_start = 0.0
        self._elapsed_done = 0.0
        self._progress = 0.0
        self._candidate: Optional[CalibrationModel] = None
        self._estimator: Optional[BiasEstimator] = None

    # Read side -------------------------------------------------------------
    @property
    def pairs(self) -> List[CalibrationPair]:
        return list(self._pairs)

    @property
    def target(self) -> Tuple[float, float]:
        """Current dot position in fractional screen coordinates."""
        return self._pos

    @property
    def target_screen(self) -> Tuple[float, float]:
        return self.rect.to_screen(*self._pos)

    @property
    def waypoint_index(self) -> int:
        return self._wp

    @property
    def is_sampling(self) -> bool:
        return self._armed is not None

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def total_duration(self) -> float:
        n = len(self.waypoints)
        return n * self.timing.dwell_s + (n - 1) * self.timing.transit_s

    @property
    def is_active(self) -> bool:
        return self.phase in (CalibrationPhase.DWELL, CalibrationPhase.TRANSIT,
                              CalibrationPhase.FITTING, CalibrationPhase.VERIFYING)

    @property
    def verify_step(self) -> int:
        return self._estimator.step if self._estimator is not None else 0

    @property
    def verify_target_screen(self) -> Optional[Tuple[float, float]]:
        if self.phase is not CalibrationPhase.VERIFYING or self._estimator is None:
            return None
        return self._estimator.current_target

    # Lifecycle -------------------------------------------------------------
    def start(self, now: Optional[float] = None) -> None:
        now = time.monotonic() if now is None else float(now)
        self._reset_run()
        self.last_error = None
        self.verification = None
        self.phase = CalibrationPhase.DWELL
        self._phase_start = now
        logger.info("Calibration started: %d waypoints, %.1fs", len(self.waypoints), self.total_duration)

    def cancel(self) -> None:
        if self.phase is not CalibrationPhase.IDLE:
            logger.info("Calibration cancelled in phase %s", self.phase.name)
        self._reset_run()
        self.phase = CalibrationPhase.IDLE

    def _reset_run(self) -> None:
        self._armed = None
        self._pairs = []
        self._wp = 0
        self._pos = self.waypoints[0]
        self._elapsed_done = 0.0
        self._progress = 0.0
        self._candidate = None
        self._estimator = None

    # Timer side ------------------------------------------------------------
    def tick(self, now: Optional[float] = None) -> CalibrationPhase:
        now = time.monotonic() if now is None else float(now)
        if self.phase not in (CalibrationPhase.DWELL, CalibrationPhase.TRANSIT):
            return self.phase
        dwell, transit, settle = self.timing.dwell_s, self.timing.transit_s, self.timing.settle_s

        while True:
            elapsed = now - self._phase_start
            if self.phase is CalibrationPhase.DWELL:
                if elapsed < dwell:
                    self._armed = self.rect.to_screen(*self._pos) if elapsed >= settle else None
                    break
                self._armed = None
                self._advance(dwell)
                if self._wp >= len(self.waypoints) - 1:
                    self._progress = 1.0
                    self._finish_sampling()
                    return self.phase
                self._wp += 1
                self.phase = CalibrationPhase.TRANSIT
            else:
                self._armed = None
                a = self.waypoints[self._wp - 1]
                b = self.waypoints[self._wp]
                if elapsed < transit:
                    e = ease_in_out(elapsed / transit)
                    self._pos = (a[0] + (b[0] - a[0]) * e, a[1] + (b[1] - a[1]) * e)
                    break
                self._pos = b
                self._advance(transit)
                self.phase = CalibrationPhase.DWELL

        total = self.total_duration
        frac = (self._elapsed_done + (now - self._phase_start)) / total if total > 0 else 1.0
        self._progress = max(self._progress, min(1.0, frac))
        return self.phase

    def _advance(self, duration: float) -> None:
        self._phase_start += duration
        self._elapsed_done += duration

    def _finish_sampling(self) -> None:
        self.phase = CalibrationPhase.FITTING
        try:
            model = fit_polynomial(self._pairs, min_pairs=self.mapper.min_pairs, eps=self.mapper.pivot_eps)
        except CalibrationError as e:
            self.last_error = e
            self.phase = CalibrationPhase.FAILED
            logger.warning("Calibration fit failed with %d pairs: %s", len(self._pairs), e)
            return
        self.fitted_pairs = len(self._pairs)
        self._pairs = []
        self._candidate = model
        targets = [self.rect.to_screen(fx, fy) for fx, fy in self.verify_targets]
        if not targets:
            self._complete(VerificationResult(bias=None))
            return
        self._estimator = BiasEstimator(targets, model, self.sample_window, self.min_samples)
        self.phase = CalibrationPhase.VERIFYING

    # Landmark-callback side ------------------------------------------------
    def ingest(self, sample: IrisSample) -> bool:
        """Pair the sample with the settled dot position. Returns True if recorded."""
        armed = self._armed
        if armed is None:
            return False
        self._pairs.append(CalibrationPair(iris=sample, target=armed))
        return True

    # Verification ----------------------------------------------------------
    def confirm(self, recent: Sequence[IrisSample]) -> CalibrationPhase:
        """Handle one verification confirm event using the recent-sample buffer."""
        if self.phase is not CalibrationPhase.VERIFYING or self._estimator is None:
            raise RuntimeError(f"cannot confirm verification in phase {self.phase.name}")
        if self._estimator.confirm(recent):
            self._complete(self._estimator.result())
        return self.phase

    def _complete(self, result: VerificationResult) -> None:
        assert self._candidate is not None
        self.mapper.install(self._candidate, result.bias)
        self.verification = result
        self._candidate = None
        self._estimator = None
        self.phase = CalibrationPhase.READY
        acc = result.accuracy
        logger.info("Calibration ready (%d pairs, %d verification residuals, mean %.1f px, max %.1f px)",
                    self.fitted_pairs, result.residual_count, acc.mean_px, acc.max_px)
