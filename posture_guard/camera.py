# camera.py
"""Thin VideoCapture wrapper used as the capture collaborator."""

from __future__ import annotations

import logging
import time
from typing import Optional

import cv2
import numpy as np

from posture_guard.config import CameraConfig

logger = logging.getLogger(__name__)


class Camera:
    def __init__(self, config: CameraConfig) -> None:
        self.config = config
        self.cap: Optional[cv2.VideoCapture] = None

        # Exposed runtime-queryable values
        self.actual_width: int = 0
        self.actual_height: int = 0
        self.actual_fps: float = 0.0

    def open(self) -> bool:
        """Open the device and apply resolution/fps."""
        backend = cv2.CAP_V4L2 if self.config.use_v4l2 else cv2.CAP_ANY
        self.cap = cv2.VideoCapture(self.config.device_index, backend)
        if not self.cap or not self.cap.isOpened():
            logger.error("Could not open camera %s", self.config.device_index)
            self.cap = None
            return False

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        if self.config.fps_request > 0:
            self.cap.set(cv2.CAP_PROP_FPS, self.config.fps_request)

        time.sleep(0.1)  # Let driver settle

        self.actual_width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.actual_height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.actual_fps = self.cap.get(cv2.CAP_PROP_FPS)
        logger.info(
            "Camera %s: %dx%d@%.1f FPS",
            self.config.device_index, self.actual_width, self.actual_height, self.actual_fps,
        )
        if self.actual_width == 0 or self.actual_height == 0:
            logger.error("Camera returned zero resolution")
            self.release()
            return False
        return True

    def read_frame(self) -> Optional[np.ndarray]:
        if not self.is_open():
            return None
        ret, frame = self.cap.read()
        return frame if ret and frame is not None else None

    def is_open(self) -> bool:
        return bool(self.cap and self.cap.isOpened())

    def release(self) -> None:
        if self.cap:
            logger.info("Releasing capture device")
            self.cap.release()
            self.cap = None
