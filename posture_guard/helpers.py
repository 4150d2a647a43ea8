# helpers.py
"""Small utility classes that don’t fit elsewhere."""
from collections import deque
from typing import Deque, List, Optional

import numpy as np

from posture_guard.common import BoundingBox


class PositionHistory:
    """
    Sliding window of the most recent face boxes.

    The running mean is recomputed on every ``add`` so reads are free.
    Each field is averaged independently and truncated toward zero.
    """

    def __init__(self, capacity: int):
        self.capacity = capacity
        self._boxes: Deque[BoundingBox] = deque(maxlen=capacity)
        self._average: Optional[BoundingBox] = None

    def add(self, box: BoundingBox) -> None:
        self._boxes.append(box)  # deque drops the oldest when full
        arr = np.array([b.as_tuple() for b in self._boxes], dtype=np.int64)
        mean = arr.sum(axis=0) / len(self._boxes)
        self._average = BoundingBox(*(int(v) for v in mean))

    def average(self) -> Optional[BoundingBox]:
        return self._average

    def is_full(self) -> bool:
        return len(self._boxes) == self.capacity

    def clear(self) -> None:
        self._boxes.clear()
        self._average = None

    def boxes(self) -> List[BoundingBox]:
        """Buffered boxes, oldest first."""
        return list(self._boxes)

    def __len__(self) -> int:
        return len(self._boxes)
