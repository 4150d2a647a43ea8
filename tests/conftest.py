import threading
from typing import Iterable, List, Optional

import numpy as np
import pytest

from posture_guard.alert import AudioDeviceError
from posture_guard.common import BoundingBox


def box_at(center_y: int, height: int = 50, x: int = 100, width: int = 50) -> BoundingBox:
    return BoundingBox(x, center_y - height // 2, width, height)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCapture:
    def __init__(self, height: int = 480, width: int = 640, available: bool = True):
        self.frame = np.zeros((height, width, 3), dtype=np.uint8)
        self.available = available
        self.reads = 0

    def read_frame(self):
        self.reads += 1
        return self.frame if self.available else None


class FakeDetector:
    """Returns queued boxes first, then ``default`` forever."""

    def __init__(self, default: Optional[BoundingBox] = None, queued: Iterable = ()):
        self.default = default
        self.queued = list(queued)
        self.calls = 0

    def detect_single_face(self, frame):
        self.calls += 1
        if self.queued:
            return self.queued.pop(0)
        return self.default


class FakeDisplay:
    def __init__(self, keys: Iterable[Optional[int]] = ()):
        self.keys = list(keys)
        self.renders: List = []
        self.waits: List[float] = []
        self.open = True

    def _next_key(self):
        return self.keys.pop(0) if self.keys else None

    def render(self, frame, overlays):
        self.renders.append(overlays)

    def poll_key(self):
        return self._next_key()

    def wait_key(self, timeout):
        self.waits.append(timeout)
        return self._next_key()

    def is_open(self):
        return self.open


class FakeAlerts:
    def __init__(self):
        self.calls: List[str] = []

    def request_alert(self):
        self.calls.append("alert")

    def enter_idle(self):
        self.calls.append("idle")

    def shut_down(self):
        self.calls.append("shutdown")

    @property
    def alert_count(self) -> int:
        return self.calls.count("alert")


class RecordingSink:
    """Playback sink that records device traffic instead of making noise."""

    def __init__(self, fail_open: bool = False, fail_write: bool = False):
        self.events: List[str] = []
        self.fail_open = fail_open
        self.fail_write = fail_write
        self.written = threading.Event()
        self.closed = threading.Event()
        self._open = False

    def open(self):
        self.events.append("open")
        if self.fail_open:
            raise AudioDeviceError("no device")
        self._open = True

    def write(self, samples):
        self.events.append("write")
        self.written.set()
        if self.fail_write:
            raise AudioDeviceError("write failed")

    def close(self):
        self.events.append("close")
        self._open = False
        self.closed.set()

    def is_open(self):
        return self._open


@pytest.fixture
def clock():
    return FakeClock()
