from __future__ import annotations

"""
MediaPipe FaceMesh landmark provider.

Turns a BGR camera frame into `FaceLandmarks` (four socket landmarks plus the
refined iris center per eye, normalized image coordinates). Requires the
optional `detector` extra (mediapipe + opencv-python).
"""
import logging
from typing import Optional

try:
    import cv2  # type: ignore
    import mediapipe as mp  # type: ignore
except Exception:  # pragma: no cover
    cv2 = None  # type: ignore
    mp = None  # type: ignore

from AttentionTracker.core.errors import AcquisitionError
from .gaze_parser import EyeLandmarks, FaceLandmarks

logger = logging.getLogger(__name__)

# outer corner, inner corner, upper lid, lower lid, iris center
RIGHT_EYE_IDX = (33, 133, 159, 145, 468)
LEFT_EYE_IDX = (263, 362, 386, 374, 473)


def eye_from_landmarks(pts, idx) -> EyeLandmarks:
    outer, inner, top, bottom, iris = ((float(pts[i].x), float(pts[i].y)) for i in idx)
    return EyeLandmarks(outer=outer, inner=inner, top=top, bottom=bottom, iris=iris)


class FaceMeshLandmarkProvider:
    def __init__(self, min_detection_confidence: float = 0.5, min_tracking_confidence: float = 0.5) -> None:
        self.min_detection_confidence = float(min_detection_confidence)
        self.min_tracking_confidence = float(min_tracking_confidence)
        self._mesh = None

    def open(self) -> None:
        if mp is None or cv2 is None:
            raise AcquisitionError("mediapipe and opencv-python are required for live tracking (install the 'detector' extra)")
        try:
            self._mesh = mp.solutions.face_mesh.FaceMesh(
                max_num_faces=1,
                refine_landmarks=True,
                min_detection_confidence=self.min_detection_confidence,
                min_tracking_confidence=self.min_tracking_confidence,
            )
        except Exception as e:
            raise AcquisitionError(f"Failed to initialise FaceMesh: {e}") from e
        logger.info("FaceMesh landmark provider ready")

    @property
    def is_open(self) -> bool:
        return self._mesh is not None

    def close(self) -> None:
        if self._mesh is not None:
            try:
                self._mesh.close()
            finally:
                self._mesh = None

    def process(self, frame) -> Optional[FaceLandmarks]:
        """Landmarks for the first detected face, or None when no face is found."""
        if self._mesh is None:
            raise RuntimeError("landmark provider is not open")
        if frame is None:
            return None
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        res = self._mesh.process(rgb)
        if not res or not res.multi_face_landmarks:
            return None
        pts = res.multi_face_landmarks[0].landmark
        if len(pts) <= max(LEFT_EYE_IDX + RIGHT_EYE_IDX):
            # refine_landmarks disabled or unsupported model: no iris points
            return None
        return FaceLandmarks(
            right=eye_from_landmarks(pts, RIGHT_EYE_IDX),
            left=eye_from_landmarks(pts, LEFT_EYE_IDX),
        )

    def __enter__(self) -> "FaceMeshLandmarkProvider":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()
