# config.py
"""Typed configuration blobs for the whole system."""
from dataclasses import dataclass
from typing import Optional


# ---------------------- Camera ----------------------
@dataclass
class CameraConfig:
    device_index: int = 0
    width: int = 640
    height: int = 480
    fps_request: int = 30
    use_v4l2: bool = False


# --------------------- Detector ---------------------
@dataclass
class DetectorConfig:
    backend: str = "mediapipe"          # "mediapipe" or "haar"
    model_selection: int = 0
    min_detection_confidence: float = 0.5
    min_bbox_size: int = 30
    face_cascade: Optional[str] = None  # None -> OpenCV's bundled frontalface_alt
    eyes_cascade: Optional[str] = None  # Haar only; eyes are drawn, never used for posture


# ---------------------- Monitor ---------------------
@dataclass
class MonitorConfig:
    history_capacity: int = 5
    check_duration_s: float = 10.0
    sleep_duration_s: float = 600.0
    # Alert once |Δy| exceeds this fraction of the frame height
    drift_threshold_fraction: float = 0.1
    # Optional: alert when the face size ratio leaves [1/t, t]
    size_ratio_threshold: Optional[float] = None
    idle_wait_s: float = 1.0

    def __post_init__(self) -> None:
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be >= 1")
        if self.drift_threshold_fraction <= 0:
            raise ValueError("drift_threshold_fraction must be > 0")
        if self.size_ratio_threshold is not None and self.size_ratio_threshold < 1.0:
            raise ValueError("size_ratio_threshold must be >= 1")


# ----------------------- Alert ----------------------
@dataclass
class AlertConfig:
    sound_file: Optional[str] = None    # None -> synthesized beep
    header_size: int = 44               # canonical WAV header
    sample_rate: int = 44_100
    channels: int = 2
    beep_frequency_hz: float = 880.0
    beep_duration_s: float = 0.25
