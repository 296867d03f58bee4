"""
Per-frame tracking session.

One `Pipeline` owns every piece of mutable tracking state (outlier memory,
recent-sample buffer, calibration, mapper, filter, recording). The landmark
provider calls `on_landmarks()` once per frame and every stage runs
synchronously inside that call:

    normalize -> outlier guard -> recent buffer -> calibration ingest
              -> map (model + bias) -> project to content frame
              -> adaptive filter -> bounds check -> record GazePoint

A display-rate loop calls `tick()` to drive the calibration dot; a slower
timer may read `recording.snapshot()` for aggregation.
"""
from __future__ import annotations

import logging
import math
import threading
import time
from collections import deque
from typing import Deque, List, Optional, Tuple

from AttentionTracker.analysis.attention import live_intensity
from AttentionTracker.analysis.sessions import RecordedSession
from AttentionTracker.calibration.models import CalibrationTiming, ScreenRect
from AttentionTracker.calibration.session import CalibrationPhase, CalibrationSession
from AttentionTracker.core.events import GazePoint
from AttentionTracker.core.settings import SettingsManager
from .gaze_parser import FaceLandmarks, IrisNormalizer, IrisSample, OutlierGuard
from .mapping import GazeMapper
from .smoothing import AdaptiveLowPass

logger = logging.getLogger(__name__)


class GazeRecording:
    """Append-only, lock-guarded gaze point store for one recording."""

    def __init__(self, started_at: float) -> None:
        self.started_at = float(started_at)
        self._points: List[GazePoint] = []
        self._lock = threading.Lock()

    def append(self, point: GazePoint) -> None:
        with self._lock:
            self._points.append(point)

    def snapshot(self) -> Tuple[GazePoint, ...]:
        with self._lock:
            return tuple(self._points)

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)


class Pipeline:
    def __init__(self, settings: Optional[SettingsManager] = None) -> None:
        self.settings = settings or SettingsManager()
        s = self.settings
        self.normalizer = IrisNormalizer(blink_ratio=s.blink_ratio(), min_extent=s.min_eye_extent())
        self.guard = OutlierGuard(threshold=s.outlier_threshold())
        self.recent: Deque[IrisSample] = deque(maxlen=s.sample_buffer_size())
        self.mapper = GazeMapper(min_pairs=s.min_calibration_pairs(), pivot_eps=s.pivot_eps())
        self.rect = ScreenRect(*s.screen_rect())
        self.content_rect = self.rect
        content = s.content_rect()
        if content is not None:
            self.set_content_rect(ScreenRect(*content))
        self.frame_size = s.frame_size()
        self.fps = s.frame_fps()
        dwell, transit, settle = s.calibration_timing()
        window, min_samples = s.verification_window()
        self.calibration = CalibrationSession(
            self.mapper,
            s.calibration_waypoints(),
            s.verification_targets(),
            self.rect,
            timing=CalibrationTiming(dwell_s=dwell, transit_s=transit, settle_s=settle),
            sample_window=window,
            min_samples=min_samples,
        )
        self.filter = AdaptiveLowPass(*s.filter_params())
        self.recording: Optional[GazeRecording] = None
        self.source_name = ""
        self._content_time = 0.0
        self._cursor: Optional[Tuple[int, int]] = None

    # Landmark callback -----------------------------------------------------
    def on_landmarks(self, face: FaceLandmarks, now: Optional[float] = None) -> Optional[GazePoint]:
        """Run one frame through every stage. Returns the recorded point, if any."""
        now = time.monotonic() if now is None else float(now)
        sample = self.normalizer.process(face)
        if sample is None:
            return None
        if not self.guard.accept(sample):
            return None
        self.recent.append(sample)
        self.calibration.ingest(sample)

        screen = self.mapper.map(sample)
        if screen is None:
            return None
        raw = self.content_rect.to_frame(screen[0], screen[1], self.frame_size)
        fx, fy = self.filter.apply(raw, now)
        self._cursor = (int(round(fx)), int(round(fy)))

        rec = self.recording
        if rec is None:
            return None
        w, h = self.frame_size
        if not (0.0 <= fx < w and 0.0 <= fy < h):
            return None
        point = GazePoint(
            timestamp=self._content_time,
            x=min(w - 1, int(round(fx))),
            y=min(h - 1, int(round(fy))),
            wall_time=now - rec.started_at,
            frame=int(round(self._content_time * self.fps)),
        )
        rec.append(point)
        return point

    # Calibration -----------------------------------------------------------
    def start_calibration(self, now: Optional[float] = None) -> None:
        self._reset_tracking()
        self.calibration.start(now)

    def tick(self, now: Optional[float] = None) -> CalibrationPhase:
        return self.calibration.tick(now)

    def confirm_verification(self) -> CalibrationPhase:
        return self.calibration.confirm(list(self.recent))

    # Recording -------------------------------------------------------------
    def start_recording(self, source_name: str = "", now: Optional[float] = None) -> GazeRecording:
        now = time.monotonic() if now is None else float(now)
        if not self.mapper.is_calibrated:
            logger.warning("Recording started without a calibration model; no points will be recorded")
        self._reset_tracking()
        self.source_name = source_name
        self._content_time = 0.0
        self.recording = GazeRecording(started_at=now)
        logger.info("Recording started (%s)", source_name or "unnamed source")
        return self.recording

    def stop_recording(self, duration: Optional[float] = None, now: Optional[float] = None) -> RecordedSession:
        """Finish the recording and hand back its points and metadata."""
        rec = self.recording
        if rec is None:
            raise RuntimeError("no recording in progress")
        now = time.monotonic() if now is None else float(now)
        self.recording = None
        self._reset_tracking()
        if duration is None:
            duration = max(self._content_time, now - rec.started_at)
        session = RecordedSession.create(self.source_name, duration, rec.snapshot())
        logger.info("Recording stopped: %d points over %.1fs", session.point_count, session.duration)
        return session

    def set_content_time(self, seconds: float) -> None:
        if not math.isfinite(seconds) or seconds < 0:
            raise ValueError(f"invalid content time: {seconds!r}")
        self._content_time = float(seconds)

    def set_content_rect(self, rect: ScreenRect) -> None:
        """Screen rectangle the content frame is displayed in (defaults to the calibration rect)."""
        self.content_rect = rect

    @property
    def gaze_cursor(self) -> Optional[Tuple[int, int]]:
        return self._cursor

    def live_intensity(self, now: Optional[float] = None) -> int:
        """Intensity meter over the trailing wall-clock window of the current recording."""
        rec = self.recording
        if rec is None:
            return 0
        now = time.monotonic() if now is None else float(now)
        return live_intensity(
            rec.snapshot(),
            now - rec.started_at,
            window_sec=self.settings.intensity_window_sec(),
            expected_hz=self.settings.expected_gaze_hz(),
        )

    # Teardown --------------------------------------------------------------
    def cancel(self) -> None:
        """Stop calibration and drop per-session state before the next sample."""
        self.calibration.cancel()
        if self.recording is not None:
            logger.info("Recording discarded (%d points)", len(self.recording))
            self.recording = None
        self._reset_tracking()

    def _reset_tracking(self) -> None:
        self.filter.reset()
        self.guard.reset()
        self.recent.clear()
        self._cursor = None
