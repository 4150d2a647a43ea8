# posture_guard/__init__.py
"""Posture monitor package – re-export high-level API."""
from .alert import AlertService, PygameSink                     # noqa: F401
from .config import (                                           # noqa: F401
    AlertConfig, CameraConfig, DetectorConfig, MonitorConfig,
)
from .helpers import PositionHistory                            # noqa: F401
from .monitor import PostureMonitor                             # noqa: F401
