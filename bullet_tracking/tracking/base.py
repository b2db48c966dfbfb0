from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np

UNKNOWN_DIRECTION = "Unknown"


class TrackState(str, Enum):
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    LOST = "lost"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class Observation:
    frame_index: int
    timestamp: float
    center: Tuple[float, float]
    box_xyxy: Tuple[float, float, float, float]


@dataclass(frozen=True)
class Kinematics:
    speed_kmh: float = 0.0
    direction: str = UNKNOWN_DIRECTION


@dataclass(frozen=True)
class Track:
    """Read-only snapshot of a track, taken after a frame has been committed."""
    bullet_id: str
    number: int
    state: TrackState
    history: Tuple[Observation, ...]
    misses: int
    hits: int
    kinematics: Kinematics

    @property
    def last(self) -> Observation:
        return self.history[-1]

    @property
    def box_xyxy(self) -> np.ndarray:
        return np.array(self.last.box_xyxy, dtype=float)


def format_bullet_id(number: int) -> str:
    return f"bullet_{number}"
