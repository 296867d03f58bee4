"""
Camera capture using OpenCV VideoCapture.

- Opens the configured webcam index, requests a resolution and FPS hint
- read() returns BGR frames (OpenCV default) or None on a dropped frame
- Raises AcquisitionError when the device cannot be opened
"""
from __future__ import annotations

import logging
from typing import Optional

try:
    import cv2  # type: ignore
except Exception:  # pragma: no cover
    cv2 = None

from AttentionTracker.core.errors import AcquisitionError

logger = logging.getLogger(__name__)


class Camera:
    def __init__(self, index: int = 0, width: int = 640, height: int = 360, target_fps: int = 30) -> None:
        self.index = int(index)
        self.width = int(width)
        self.height = int(height)
        self.target_fps = max(1, int(target_fps))
        self.cap = None

    def open(self) -> None:
        if cv2 is None:
            raise AcquisitionError("OpenCV (cv2) is not installed.")
        cap = cv2.VideoCapture(self.index)
        if cap is None or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise AcquisitionError(
                f"Camera {self.index} could not be opened. Close other apps using the camera "
                "and check the OS camera permissions."
            )
        self.cap = cap
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        # Best-effort hint; drivers may ignore it
        self.cap.set(cv2.CAP_PROP_FPS, float(self.target_fps))
        actual_w = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if actual_w > 0 and actual_h > 0:
            self.width, self.height = actual_w, actual_h
        logger.info("Camera %d opened at %dx%d", self.index, self.width, self.height)

    def read(self) -> Optional[object]:
        if self.cap is None:
            return None
        ok, frame = self.cap.read()
        if not ok or frame is None:
            return None
        return frame

    def close(self) -> None:
        if self.cap is not None:
            try:
                self.cap.release()
            finally:
                self.cap = None

    @property
    def is_open(self) -> bool:
        return bool(self.cap is not None and self.cap.isOpened())

    def __enter__(self) -> "Camera":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
