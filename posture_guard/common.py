# common.py
"""Objects that are shared across multiple modules."""
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """A face region in frame pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"negative box size: {self.width}x{self.height}")

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)


class MonitorState(Enum):
    QUIT = auto()
    RESET = auto()
    CALIBRATING = auto()
    CHECKING = auto()
    PAUSED = auto()
    SLEEPING = auto()


_TIMED_STATES = (MonitorState.CHECKING, MonitorState.SLEEPING)


@dataclass(frozen=True)
class MonitorPhase:
    """
    Current state plus its payload.
    Only CHECKING and SLEEPING carry a deadline (monotonic seconds).
    """
    state: MonitorState
    deadline: Optional[float] = None

    def __post_init__(self) -> None:
        timed = self.state in _TIMED_STATES
        if timed and self.deadline is None:
            raise ValueError(f"{self.state.name} requires a deadline")
        if not timed and self.deadline is not None:
            raise ValueError(f"{self.state.name} cannot carry a deadline")


class AlertCommand(Enum):
    IDLE = auto()
    PLAY_ONCE = auto()
    SUSPEND = auto()
    TERMINATE = auto()


@dataclass(frozen=True)
class Overlays:
    """What the display draws on top of the current frame."""
    state: MonitorState
    detection: Optional[BoundingBox] = None
    desired: Optional[BoundingBox] = None
    average: Optional[BoundingBox] = None
    delta_y: Optional[float] = None
    delta_size: Optional[float] = None
    alerting: bool = False
    eyes: Tuple[BoundingBox, ...] = ()
