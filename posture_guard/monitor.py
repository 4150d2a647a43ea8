# monitor.py
"""Posture state machine: capture → detect → smooth → compare → alert."""
from __future__ import annotations

import dataclasses
import logging
import math
import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, Tuple

from posture_guard.common import BoundingBox, MonitorPhase, MonitorState, Overlays
from posture_guard.config import MonitorConfig
from posture_guard.helpers import PositionHistory

if TYPE_CHECKING:
    from posture_guard.live_tuning import RuntimeParamWatcher

logger = logging.getLogger(__name__)

KEY_ESC = 27
KEY_SPACE = 32
KEY_QUIT = ord("q")
KEY_PAUSE = ord("p")
QUIT_KEYS = (KEY_QUIT, KEY_ESC)


# ---------------------------------------------------------------------
#                        Collaborator interfaces
# ---------------------------------------------------------------------
class Capture(Protocol):
    def read_frame(self) -> Optional[Any]: ...


class Detector(Protocol):
    def detect_single_face(self, frame: Any) -> Optional[BoundingBox]: ...


class Display(Protocol):
    def render(self, frame: Any, overlays: Overlays) -> None: ...
    def poll_key(self) -> Optional[int]: ...
    def wait_key(self, timeout: float) -> Optional[int]: ...
    def is_open(self) -> bool: ...


class Alerts(Protocol):
    def request_alert(self) -> None: ...
    def enter_idle(self) -> None: ...
    def shut_down(self) -> None: ...


def measure_drift(desired: BoundingBox, current: BoundingBox) -> Tuple[float, float]:
    """
    Returns (delta_y, delta_size).

    delta_y is positive when the current face centre sits above the baseline;
    delta_size > 1 means the face got smaller (user leaned back).
    """
    delta_y = desired.center_y - current.center_y
    current_area = current.width * current.height
    if current_area == 0:
        return delta_y, math.inf
    delta_size = math.sqrt(desired.width * desired.height) / math.sqrt(current_area)
    return delta_y, delta_size


def _positive(value: float) -> bool:
    return value > 0


def _at_least_one(value: float) -> bool:
    # [1/t, t] is empty below 1
    return value >= 1.0


class PostureMonitor:
    """
    Drives one tick per call to ``tick``.

    Owns the position history and the current phase exclusively; the alert
    service is only ever sent commands.
    """

    def __init__(
        self,
        config: MonitorConfig,
        capture: Capture,
        detector: Detector,
        display: Display,
        alerts: Alerts,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = dataclasses.replace(config)
        self.capture = capture
        self.detector = detector
        self.display = display
        self.alerts = alerts
        self._clock = clock

        self.history = PositionHistory(config.history_capacity)
        self.desired: Optional[BoundingBox] = None
        self.phase = MonitorPhase(MonitorState.RESET)

        # Runtime metrics
        self.last_detection: Optional[BoundingBox] = None
        self.alerts_requested = 0
        self.total_ticks = 0

    @property
    def state(self) -> MonitorState:
        return self.phase.state

    # ---------------------------------------------------------------------
    #                           Live tuning
    # ---------------------------------------------------------------------
    def apply_tuning(
        self,
        *,
        drift_threshold_fraction: Any = None,
        size_ratio_threshold: Any = None,
        check_duration_s: Any = None,
        sleep_duration_s: Any = None,
    ) -> None:
        """
        Update thresholds/durations while running.

        Values usually come straight from a JSON file, so anything that is not
        a finite number above its minimum is logged and skipped.
        """
        for name, value, valid in (
            ("drift_threshold_fraction", drift_threshold_fraction, _positive),
            ("size_ratio_threshold", size_ratio_threshold, _at_least_one),
            ("check_duration_s", check_duration_s, _positive),
            ("sleep_duration_s", sleep_duration_s, _positive),
        ):
            if value is None:
                continue
            try:
                number = float(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring %s=%r: not a number", name, value)
                continue
            if not (math.isfinite(number) and valid(number)):
                logger.warning("Ignoring %s=%r: out of range", name, value)
                continue
            setattr(self.config, name, number)

    # ---------------------------------------------------------------------
    #                         State bookkeeping
    # ---------------------------------------------------------------------
    def _enter(self, state: MonitorState, deadline: Optional[float] = None) -> None:
        if state is not self.phase.state:
            logger.info("%s -> %s", self.phase.state.name, state.name)
        self.phase = MonitorPhase(state, deadline)

    def _quit_requested(self, key: Optional[int]) -> bool:
        return key in QUIT_KEYS or not self.display.is_open()

    def _is_drifting(self, delta_y: float, delta_size: float, frame_height: int) -> bool:
        if abs(delta_y) > frame_height * self.config.drift_threshold_fraction:
            return True
        ratio = self.config.size_ratio_threshold
        if ratio is not None and not (1.0 / ratio <= delta_size <= ratio):
            return True
        return False

    # ---------------------------------------------------------------------
    #                          Per-state ticks
    # ---------------------------------------------------------------------
    def _tick_reset(self) -> None:
        self.desired = None
        self.history.clear()
        self.alerts.enter_idle()
        self._enter(MonitorState.CALIBRATING)

    def _tick_sensing(self) -> None:
        state = self.phase.state
        key = self.display.poll_key()
        if self._quit_requested(key):
            self._enter(MonitorState.QUIT)
            return

        # -------- Capture & detection --------
        frame = self.capture.read_frame()
        detection = None
        if frame is not None:
            detection = self.detector.detect_single_face(frame)
            if detection is not None:
                self.history.add(detection)
        self.last_detection = detection
        average = self.history.average()

        # -------- Compare against baseline --------
        delta_y = delta_size = None
        alerting = False
        if state is MonitorState.CHECKING:
            if frame is not None and self.desired is not None and average is not None:
                delta_y, delta_size = measure_drift(self.desired, average)
                alerting = self._is_drifting(delta_y, delta_size, frame.shape[0])
                if alerting:
                    logger.debug("Drift dy=%.1f size=%.2f -> alert", delta_y, delta_size)
                    self.alerts.request_alert()
                    self.alerts_requested += 1
        else:
            self.alerts.enter_idle()

        # -------- Display --------
        if frame is not None:
            eyes: Tuple[BoundingBox, ...] = ()
            detect_eyes = getattr(self.detector, "detect_eyes", None)
            if detection is not None and detect_eyes is not None:
                eyes = tuple(detect_eyes(frame, detection))
            self.display.render(
                frame,
                Overlays(
                    state=state,
                    detection=detection,
                    desired=self.desired,
                    average=average,
                    delta_y=delta_y,
                    delta_size=delta_size,
                    alerting=alerting,
                    eyes=eyes,
                ),
            )

        # -------- Transitions --------
        now = self._clock()
        if state is MonitorState.CALIBRATING:
            if self.history.is_full() and average is not None:
                self.desired = average
                logger.info("Baseline calibrated at %s", average)
                self._enter(MonitorState.CHECKING, now + self.config.check_duration_s)
            elif key == KEY_PAUSE:
                self._enter(MonitorState.PAUSED)
            elif key == KEY_SPACE:
                self._enter(MonitorState.RESET)
        else:
            if now >= self.phase.deadline:
                self.alerts.enter_idle()
                self._enter(MonitorState.SLEEPING, now + self.config.sleep_duration_s)
            elif key == KEY_PAUSE:
                self._enter(MonitorState.PAUSED)
            elif key == KEY_SPACE:
                self._enter(MonitorState.RESET)

    def _tick_paused(self) -> None:
        self.alerts.enter_idle()
        key = self.display.wait_key(self.config.idle_wait_s)
        if self._quit_requested(key):
            self._enter(MonitorState.QUIT)
        elif key in (KEY_PAUSE, KEY_SPACE):
            self._enter(MonitorState.RESET)

    def _tick_sleeping(self) -> None:
        self.alerts.enter_idle()
        remaining = self.phase.deadline - self._clock()
        if remaining > 0:
            key = self.display.wait_key(min(self.config.idle_wait_s, remaining))
        else:
            key = self.display.poll_key()
        if self._quit_requested(key):
            self._enter(MonitorState.QUIT)
            return

        now = self._clock()
        if now >= self.phase.deadline:
            self.history.clear()
            self._enter(MonitorState.CHECKING, now + self.config.check_duration_s)
        elif key == KEY_PAUSE:
            self._enter(MonitorState.PAUSED)
        elif key == KEY_SPACE:
            self._enter(MonitorState.RESET)

    def tick(self) -> MonitorState:
        """Advance one iteration and return the resulting state."""
        state = self.phase.state
        if state is MonitorState.QUIT:
            return state
        self.total_ticks += 1
        if state is MonitorState.RESET:
            self._tick_reset()
        elif state is MonitorState.PAUSED:
            self._tick_paused()
        elif state is MonitorState.SLEEPING:
            self._tick_sleeping()
        else:
            self._tick_sensing()
        return self.phase.state

    # ---------------------------------------------------------------------
    #                             Public run()
    # ---------------------------------------------------------------------
    def run(self, watcher: Optional["RuntimeParamWatcher"] = None) -> None:
        logger.info("Monitoring - q/ESC quit, SPACE recalibrate/resume, p pause")
        try:
            while self.phase.state is not MonitorState.QUIT:
                if watcher is not None and watcher.maybe_reload():
                    self.apply_tuning(
                        drift_threshold_fraction=watcher.get("drift_threshold_fraction"),
                        size_ratio_threshold=watcher.get("size_ratio_threshold"),
                        check_duration_s=watcher.get("check_duration_s"),
                        sleep_duration_s=watcher.get("sleep_duration_s"),
                    )
                self.tick()
        except KeyboardInterrupt:
            logger.info("Stopped by user")
            self._enter(MonitorState.QUIT)
        finally:
            self.alerts.shut_down()
            logger.info(
                "Exited after %d ticks, %d alert requests", self.total_ticks, self.alerts_requested
            )
