# live_tuning.py
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple

logger = logging.getLogger(__name__)


class RuntimeParamWatcher:
    """Watch a JSON file of monitor thresholds and hot-reload it when it changes."""

    def __init__(self, path: str | Path = "posture_params.json") -> None:
        self.path = Path(path).expanduser().resolve()
        self._stamp: Tuple[float, int] = (0.0, -1)  # (mtime, size)
        self.params: Dict[str, Any] = {}

        logger.info("Watching %s for parameter changes", self.path)
        self._load(initial=True)

    # ------------------------------------------------------------------
    #   Internal helpers
    # ------------------------------------------------------------------
    def _load(self, *, initial: bool = False) -> None:
        try:
            stat = self.path.stat()
            self._stamp = (stat.st_mtime, stat.st_size)
            with self.path.open("r", encoding="utf-8") as fp:
                params = json.load(fp)
        except FileNotFoundError:
            if initial:
                logger.info("%s not found - live tuning idle until it is created", self.path)
            else:
                logger.warning("%s was deleted - keeping old params", self.path)
            return
        except json.JSONDecodeError as exc:
            logger.warning("JSON error in %s: %s", self.path, exc)
            return
        except (OSError, ValueError) as exc:  # includes UnicodeDecodeError
            logger.warning("Failed to reload %s: %s - keeping old params", self.path, exc)
            return

        if not isinstance(params, dict):
            logger.warning("%s must hold a JSON object - ignoring", self.path)
            return
        self.params = params
        if not initial:
            logger.info("Reloaded parameters from %s", self.path)

    # ------------------------------------------------------------------
    #   Public API
    # ------------------------------------------------------------------
    def maybe_reload(self) -> bool:
        """
        If the watched file changed since the last call reload it and
        return **True**, else return **False**.
        """
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return False

        mtime, fsize = self._stamp
        # Some filesystems only update timestamps in 1- or 2-second ticks,
        # so any change >=1 s *or* a size change counts as modified.
        if stat.st_size != fsize or stat.st_mtime - mtime >= 1.0:
            self._load()
            return True
        return False

    def get(self, key: str, default: Any | None = None) -> Any:
        return self.params.get(key, default)
