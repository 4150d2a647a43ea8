# alert.py
"""Background alert player with a single "latest command wins" slot."""
from __future__ import annotations

import logging
import os
import sys
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

import numpy as np

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame  # noqa: E402

from posture_guard.common import AlertCommand
from posture_guard.config import AlertConfig

logger = logging.getLogger(__name__)


# ------------------- Exceptions -------------------
class AudioDeviceError(RuntimeError):
    """Raised by a playback sink when the device cannot be opened or written."""


class AlertAssetError(ValueError):
    """Raised when the alert clip is too short to hold its header."""


# ------------------- Alert clip -------------------
def load_alert_samples(path: str | Path, header_size: int = 44) -> bytes:
    """Read a fixed-format clip and strip its header."""
    data = Path(path).read_bytes()
    if len(data) < header_size:
        raise AlertAssetError(
            f"{path}: {len(data)} bytes is shorter than the {header_size}-byte header"
        )
    return data[header_size:]


def synthesize_beep(cfg: AlertConfig) -> bytes:
    """Signed 16-bit interleaved sine beep matching the sink format."""
    n = int(cfg.sample_rate * cfg.beep_duration_s)
    t = np.arange(n) / cfg.sample_rate
    wave = np.sin(2 * np.pi * cfg.beep_frequency_hz * t)

    # 5 ms linear fade at both ends
    ramp = min(n // 2, int(cfg.sample_rate * 0.005))
    if ramp > 0:
        env = np.ones(n)
        env[:ramp] = np.linspace(0.0, 1.0, ramp)
        env[-ramp:] = np.linspace(1.0, 0.0, ramp)
        wave *= env

    mono = (wave * 0.5 * np.iinfo(np.int16).max).astype(np.int16)
    return np.repeat(mono[:, None], cfg.channels, axis=1).tobytes()


def terminal_bell() -> None:
    sys.stdout.write("\a")
    sys.stdout.flush()


# ------------------- Playback sink -------------------
class PlaybackSink(Protocol):
    def open(self) -> None: ...
    def write(self, samples: bytes) -> None: ...
    def close(self) -> None: ...
    def is_open(self) -> bool: ...


class PygameSink:
    """pygame.mixer as a blocking open / write / drain+close device."""

    def __init__(self, sample_rate: int = 44_100, channels: int = 2):
        self.sample_rate = sample_rate
        self.channels = channels
        self.frame_bytes = 2 * channels  # 16-bit samples
        self._open = False

    def open(self) -> None:
        if self._open:
            return
        try:
            pygame.mixer.init(frequency=self.sample_rate, size=-16, channels=self.channels)
        except pygame.error as exc:
            raise AudioDeviceError(f"Could not open audio device: {exc}") from exc
        self._open = True
        logger.debug("Audio device opened (%d Hz, %d ch)", self.sample_rate, self.channels)

    def write(self, samples: bytes) -> None:
        if not self._open:
            raise AudioDeviceError("Audio device is not open")
        usable = len(samples) - len(samples) % self.frame_bytes
        try:
            sound = pygame.mixer.Sound(buffer=samples[:usable])
            sound.play()
        except pygame.error as exc:
            raise AudioDeviceError(f"Audio write failed: {exc}") from exc
        # Block for the clip length like a device write would
        time.sleep(sound.get_length())

    def close(self) -> None:
        if not self._open:
            return
        try:
            while pygame.mixer.get_busy():
                time.sleep(0.01)
            pygame.mixer.quit()
        except pygame.error as exc:
            raise AudioDeviceError(f"Audio close failed: {exc}") from exc
        finally:
            self._open = False
        logger.debug("Audio device closed")

    def is_open(self) -> bool:
        return self._open


# ---------------------- Main class ----------------------
class AlertService:
    """
    Plays the alert clip on a dedicated worker thread.

    Callers never block beyond the lock: ``request_alert`` and ``enter_idle``
    only overwrite the command slot and wake the worker. The slot holds one
    value, so a pending command is superseded by the next different one.
    Only ``shut_down`` blocks, while the worker drains and joins.
    """

    def __init__(
        self,
        sink: PlaybackSink,
        samples: bytes,
        *,
        fallback: Callable[[], None] = terminal_bell,
        autostart: bool = True,
    ):
        self._sink = sink
        self._samples = samples
        self._fallback = fallback
        self._cond = threading.Condition()
        self._command = AlertCommand.IDLE
        # True once the most recent SUSPEND has been serviced (device closed)
        self._suspended = True
        self._thread: Optional[threading.Thread] = None
        if autostart:
            self.start()

    # ------------------ Public API -------------------
    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="alert-worker", daemon=True)
        self._thread.start()

    def request_alert(self) -> None:
        self._set(AlertCommand.PLAY_ONCE)

    def enter_idle(self) -> None:
        self._set(AlertCommand.SUSPEND)

    def shut_down(self) -> None:
        if self._thread is None:
            return
        self._set(AlertCommand.TERMINATE)
        self._thread.join()
        self._thread = None
        logger.debug("Alert worker joined")

    @property
    def pending(self) -> AlertCommand:
        with self._cond:
            return self._command

    # ----------------- Internal core -----------------
    def _set(self, command: AlertCommand) -> None:
        with self._cond:
            if self._command is command or self._command is AlertCommand.TERMINATE:
                return
            self._command = command
            self._cond.notify()

    def _has_work(self) -> bool:
        if self._command is AlertCommand.IDLE:
            return False
        return not (self._command is AlertCommand.SUSPEND and self._suspended)

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(self._has_work)
                command = self._command
                if command is AlertCommand.PLAY_ONCE:
                    self._command = AlertCommand.IDLE
                    self._suspended = False
                elif command is AlertCommand.SUSPEND:
                    self._suspended = True

            if command is AlertCommand.PLAY_ONCE:
                self._play()
            elif command is AlertCommand.SUSPEND:
                self._release()
            else:
                self._release()
                return

    def _play(self) -> None:
        try:
            if not self._sink.is_open():
                self._sink.open()
            self._sink.write(self._samples)
        except AudioDeviceError as exc:
            logger.warning("Alert playback failed (%s); using terminal bell", exc)
            self._release()
            self._fallback()

    def _release(self) -> None:
        if not self._sink.is_open():
            return
        try:
            self._sink.close()
        except AudioDeviceError as exc:
            logger.warning("Could not release audio device cleanly: %s", exc)

    # ---------------- Context / repr ---------------
    def __enter__(self) -> "AlertService":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shut_down()

    def __repr__(self) -> str:
        state = "running" if self._thread is not None else "stopped"
        return f"<AlertService {self.pending.name} ({state})>"
