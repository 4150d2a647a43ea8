# main.py
"""
Entry-point for the posture monitor.

Sit up straight while the monitor calibrates; it then watches for
``--check-seconds``, sleeps for ``--sleep-seconds`` and checks again,
beeping whenever your head sinks away from the calibrated baseline.

Live-tuning
-----------
Pass ``--params posture_params.json`` and edit that file while running;
``drift_threshold_fraction``, ``size_ratio_threshold``, ``check_duration_s``
and ``sleep_duration_s`` take effect on the next tick.
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import cv2

from posture_guard.alert import (
    AlertAssetError,
    AlertService,
    PygameSink,
    load_alert_samples,
    synthesize_beep,
)
from posture_guard.camera import Camera
from posture_guard.config import AlertConfig, CameraConfig, DetectorConfig, MonitorConfig
from posture_guard.detector import CascadeLoadError, build_detector
from posture_guard.display import OpenCVDisplay
from posture_guard.live_tuning import RuntimeParamWatcher
from posture_guard.monitor import PostureMonitor

logger = logging.getLogger("posture_guard.cli")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Webcam posture monitor with audible alerts.")
    p.add_argument("--camera", type=int, default=0, help="Camera device number.")
    p.add_argument("--v4l2", action="store_true", help="Force the V4L2 capture backend.")
    p.add_argument("--detector", choices=("mediapipe", "haar"), default="mediapipe")
    p.add_argument("--face-cascade", default=None, help="Path to a Haar face cascade.")
    p.add_argument("--eyes-cascade", default=None,
                   help="Haar eyes cascade; detected eyes are drawn (haar detector only).")
    p.add_argument("--sound", default=None, help="WAV clip (44-byte header, S16LE 44.1 kHz stereo).")
    p.add_argument("--history", type=int, default=5, help="Samples averaged per position.")
    p.add_argument("--check-seconds", type=float, default=10.0)
    p.add_argument("--sleep-seconds", type=float, default=600.0)
    p.add_argument("--threshold", type=float, default=0.1,
                   help="Vertical drift alert threshold as a fraction of frame height.")
    p.add_argument("--size-ratio", type=float, default=None,
                   help="Also alert when the face size ratio leaves [1/r, r].")
    p.add_argument("--params", default=None, help="JSON file watched for live tuning.")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)-25s | %(message)s",
    )

    # -------------------- Config blobs --------------------
    cam_cfg = CameraConfig(device_index=args.camera, use_v4l2=args.v4l2)
    det_cfg = DetectorConfig(
        backend=args.detector, face_cascade=args.face_cascade, eyes_cascade=args.eyes_cascade
    )
    alert_cfg = AlertConfig(sound_file=args.sound)
    try:
        mon_cfg = MonitorConfig(
            history_capacity=args.history,
            check_duration_s=args.check_seconds,
            sleep_duration_s=args.sleep_seconds,
            drift_threshold_fraction=args.threshold,
            size_ratio_threshold=args.size_ratio,
        )
    except ValueError as exc:
        logger.error("Invalid monitor settings: %s", exc)
        return 2

    logger.info(
        "Detector=%s history=%d check=%.0fs sleep=%.0fs threshold=%.2f",
        det_cfg.backend, mon_cfg.history_capacity, mon_cfg.check_duration_s,
        mon_cfg.sleep_duration_s, mon_cfg.drift_threshold_fraction,
    )

    # -------------------- Alert clip --------------------
    try:
        if alert_cfg.sound_file:
            samples = load_alert_samples(alert_cfg.sound_file, alert_cfg.header_size)
        else:
            samples = synthesize_beep(alert_cfg)
    except (AlertAssetError, OSError) as exc:
        logger.error("Cannot load alert sound: %s", exc)
        return 1

    try:
        detector = build_detector(det_cfg)
    except CascadeLoadError as exc:
        logger.error("%s", exc)
        return 1

    camera = Camera(cam_cfg)
    display = OpenCVDisplay()
    if not camera.open():
        detector.close()
        return 1

    # ------------------------ Run -------------------------
    try:
        watcher = RuntimeParamWatcher(args.params) if args.params else None
        alerts = AlertService(PygameSink(alert_cfg.sample_rate, alert_cfg.channels), samples)
        PostureMonitor(mon_cfg, camera, detector, display, alerts).run(watcher)
    finally:
        camera.release()
        detector.close()
        display.close()
        cv2.destroyAllWindows()
    logger.info("Main program finished.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
