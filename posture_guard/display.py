# display.py
"""HighGUI window: overlay drawing plus keyboard input."""
from typing import Optional

import cv2
import numpy as np

from posture_guard.common import BoundingBox, MonitorState, Overlays

_GREEN = (0, 255, 0)
_BLUE = (255, 128, 0)
_YELLOW = (0, 255, 255)
_RED = (0, 0, 255)
_WHITE = (255, 255, 255)


class OpenCVDisplay:
    def __init__(self, window_name: str = "Posture Guard"):
        self.window_name = window_name
        self._created = False

    def _ensure_window(self) -> None:
        if not self._created:
            cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
            self._created = True

    @staticmethod
    def _box(img: np.ndarray, box: Optional[BoundingBox], color, thickness: int = 2) -> None:
        if box is None:
            return
        cv2.rectangle(img, (box.x, box.y), (box.x + box.width, box.y + box.height), color, thickness)

    # ------------------------------------------------------------------ #
    #   R E N D E R
    # ------------------------------------------------------------------ #
    def render(self, frame: np.ndarray, overlays: Overlays) -> None:
        self._ensure_window()
        img = frame.copy()

        self._box(img, overlays.desired, _BLUE)
        self._box(img, overlays.average, _YELLOW)
        self._box(img, overlays.detection, _GREEN, 1)
        for eye in overlays.eyes:
            center = (eye.x + eye.width // 2, eye.y + eye.height // 2)
            cv2.circle(img, center, round((eye.width + eye.height) * 0.25), _BLUE, 2)

        if overlays.average is not None:
            cy = int(overlays.average.center_y)
            cv2.line(img, (0, cy), (img.shape[1], cy), _YELLOW, 1)
        if overlays.desired is not None:
            cy = int(overlays.desired.center_y)
            cv2.line(img, (0, cy), (img.shape[1], cy), _BLUE, 1)

        label = overlays.state.name
        if overlays.state is MonitorState.CALIBRATING:
            label += " - sit up straight"
        cv2.putText(img, label, (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, _WHITE, 2)
        if overlays.delta_y is not None:
            text = f"dy:{overlays.delta_y:+.0f}px"
            if overlays.delta_size is not None:
                text += f"  size:{overlays.delta_size:.2f}"
            cv2.putText(img, text, (10, 60), cv2.FONT_HERSHEY_SIMPLEX, 0.6, _WHITE, 1)

        if overlays.alerting:
            cv2.rectangle(img, (0, 0), (img.shape[1] - 1, img.shape[0] - 1), _RED, 8)

        cv2.imshow(self.window_name, img)

    # ------------------------------------------------------------------ #
    #   I N P U T
    # ------------------------------------------------------------------ #
    def poll_key(self) -> Optional[int]:
        key = cv2.waitKey(1)
        return None if key < 0 else key & 0xFF

    def wait_key(self, timeout: float) -> Optional[int]:
        # waitKey(0) blocks forever, so a spent timeout becomes a poll
        delay = max(1, int(timeout * 1000))
        key = cv2.waitKey(delay)
        return None if key < 0 else key & 0xFF

    def is_open(self) -> bool:
        if not self._created:
            return True
        return cv2.getWindowProperty(self.window_name, cv2.WND_PROP_VISIBLE) >= 1

    def close(self) -> None:
        if self._created:
            cv2.destroyWindow(self.window_name)
            self._created = False
