# detector.py
"""Face-detection adapters. Both report a face only when exactly one is found."""
import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np

from posture_guard.common import BoundingBox
from posture_guard.config import DetectorConfig

logger = logging.getLogger(__name__)


class CascadeLoadError(RuntimeError):
    """Raised when a Haar cascade file cannot be loaded."""


def _single(boxes: List[BoundingBox]) -> Optional[BoundingBox]:
    # Zero and several faces are the same signal: no usable observation
    return boxes[0] if len(boxes) == 1 else None


def _load_cascade(path: str) -> cv2.CascadeClassifier:
    cascade = cv2.CascadeClassifier()
    if not cascade.load(path):
        raise CascadeLoadError(f"Error loading cascade {path!r}")
    logger.info("Loaded cascade %s", path)
    return cascade


class MediaPipeFaceDetector:
    def __init__(self, config: DetectorConfig):
        # Imported here so the Haar backend works without the MediaPipe stack
        import mediapipe as mp
        from mediapipe.framework.formats import location_data_pb2

        self.config = config
        self._relative_bbox = location_data_pb2.LocationData.RELATIVE_BOUNDING_BOX
        self.detector = mp.solutions.face_detection.FaceDetection(
            model_selection=config.model_selection,
            min_detection_confidence=config.min_detection_confidence,
        )

    def detect(self, frame_bgr: np.ndarray) -> List[Tuple[BoundingBox, float]]:
        """
        Returns a list of (box, confidence), clamped to the image and sorted
        by confidence.
        """
        out: List[Tuple[BoundingBox, float]] = []
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        rgb.flags.writeable = False
        results = self.detector.process(rgb)
        ih, iw = rgb.shape[:2]

        if results.detections:
            for det in results.detections:
                ld = det.location_data
                if not ld or ld.format != self._relative_bbox:
                    continue
                bb = ld.relative_bounding_box
                w = int(bb.width * iw)
                h = int(bb.height * ih)
                # Clamp to valid region
                x = max(0, min(int(bb.xmin * iw), iw - w))
                y = max(0, min(int(bb.ymin * ih), ih - h))
                if w < self.config.min_bbox_size or h < self.config.min_bbox_size:
                    continue
                conf = float(det.score[0]) if det.score else 0.0
                out.append((BoundingBox(x, y, w, h), conf))

        out.sort(key=lambda t: t[1], reverse=True)
        return out

    def detect_single_face(self, frame_bgr: np.ndarray) -> Optional[BoundingBox]:
        return _single([box for box, _ in self.detect(frame_bgr)])

    def close(self) -> None:
        self.detector.close()


class HaarCascadeFaceDetector:
    """Classic OpenCV cascade: grayscale, equalize, detectMultiScale."""

    DEFAULT_CASCADE = "haarcascade_frontalface_alt.xml"

    def __init__(self, config: DetectorConfig):
        self.config = config
        self.cascade = _load_cascade(
            config.face_cascade or cv2.data.haarcascades + self.DEFAULT_CASCADE
        )
        self.eyes_cascade: Optional[cv2.CascadeClassifier] = None
        if config.eyes_cascade:
            self.eyes_cascade = _load_cascade(config.eyes_cascade)

    @staticmethod
    def _gray(frame_bgr: np.ndarray) -> np.ndarray:
        return cv2.equalizeHist(cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2GRAY))

    def detect(self, frame_bgr: np.ndarray) -> List[BoundingBox]:
        size = self.config.min_bbox_size
        faces = self.cascade.detectMultiScale(self._gray(frame_bgr), minSize=(size, size))
        return [BoundingBox(int(x), int(y), int(w), int(h)) for (x, y, w, h) in faces]

    def detect_single_face(self, frame_bgr: np.ndarray) -> Optional[BoundingBox]:
        return _single(self.detect(frame_bgr))

    def detect_eyes(self, frame_bgr: np.ndarray, face: BoundingBox) -> List[BoundingBox]:
        """Eyes inside ``face``, in frame coordinates. Overlay only."""
        if self.eyes_cascade is None:
            return []
        roi = self._gray(frame_bgr)[face.y:face.y + face.height, face.x:face.x + face.width]
        if roi.size == 0:
            return []
        eyes = self.eyes_cascade.detectMultiScale(roi)
        return [
            BoundingBox(face.x + int(x), face.y + int(y), int(w), int(h))
            for (x, y, w, h) in eyes
        ]

    def close(self) -> None:
        pass


def build_detector(config: DetectorConfig):
    if config.backend == "haar":
        return HaarCascadeFaceDetector(config)
    if config.backend == "mediapipe":
        return MediaPipeFaceDetector(config)
    raise ValueError(f"Unknown detector backend {config.backend!r}")
