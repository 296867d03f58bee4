"""
Exception types raised by the tracking core.

Unreliable frames (blinks, outlier jumps) and a missing calibration model are
expected steady-state conditions and never show up here.
"""
from __future__ import annotations


class TrackerError(RuntimeError):
    pass


class AcquisitionError(TrackerError):
    """Camera or landmark provider could not be opened."""


class CalibrationError(TrackerError):
    """Base class for calibration fits that did not produce a model."""


class InsufficientDataError(CalibrationError):
    def __init__(self, count: int, required: int) -> None:
        super().__init__(f"need at least {required} calibration pairs, got {count}")
        self.count = int(count)
        self.required = int(required)


class SingularSystemError(CalibrationError):
    """Calibration geometry is degenerate (near-zero pivot in the normal equations)."""

    def __init__(self, column: int, pivot: float) -> None:
        super().__init__(f"singular system at column {column} (pivot {pivot:.3e})")
        self.column = int(column)
        self.pivot = float(pivot)
