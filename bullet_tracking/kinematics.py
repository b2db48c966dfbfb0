"""Speed and heading estimation from a track's recent observations.

Speeds are converted from pixels to km/h with an external calibration
(`px_per_km`); nothing here tries to infer it from the video.
"""
from __future__ import annotations

import math
from typing import Sequence, Tuple

from .tracking.base import UNKNOWN_DIRECTION, Kinematics, Observation, TrackState

SECONDS_PER_HOUR = 3600.0

DIRECTIONS_4 = ("Right", "Up", "Left", "Down")
DIRECTIONS_8 = ("Right", "Up-Right", "Up", "Up-Left", "Left", "Down-Left", "Down", "Down-Right")


def classify_direction(dx: float, dy: float, directions: int = 4) -> str:
    """Label a pixel displacement. Image y grows downward, so -dy is "Up".

    4-way: exact diagonals resolve to the horizontal label.
    8-way: a sector boundary belongs to the counter-clockwise sector.
    """
    if dx == 0.0 and dy == 0.0:
        return UNKNOWN_DIRECTION

    if directions == 4:
        if abs(dx) >= abs(dy):
            return "Right" if dx > 0 else "Left"
        return "Down" if dy > 0 else "Up"

    angle = math.degrees(math.atan2(-dy, dx)) % 360.0
    sector = int(math.floor((angle + 22.5) / 45.0)) % 8
    return DIRECTIONS_8[sector]


def displacement(history: Sequence[Observation], window: int) -> Tuple[float, float, float]:
    """(dx, dy, dt) between the oldest and newest observation of the last `window`."""
    recent = history[-window:]
    first, last = recent[0], recent[-1]
    dx = last.center[0] - first.center[0]
    dy = last.center[1] - first.center[1]
    dt = last.timestamp - first.timestamp
    return dx, dy, dt


def speed_kmh(pixel_distance: float, elapsed_sec: float, px_per_km: float) -> float:
    if elapsed_sec <= 0.0 or px_per_km <= 0.0:
        return 0.0
    km = pixel_distance / px_per_km
    return max(0.0, km * SECONDS_PER_HOUR / elapsed_sec)


def estimate(
    history: Sequence[Observation],
    state: TrackState,
    px_per_km: float,
    window: int = 3,
    directions: int = 4,
) -> Kinematics:
    if state not in (TrackState.CONFIRMED, TrackState.LOST) or len(history) < 2:
        return Kinematics()

    dx, dy, dt = displacement(history, max(2, window))
    if dt <= 0.0:
        return Kinematics()

    return Kinematics(
        speed_kmh=speed_kmh(math.hypot(dx, dy), dt, px_per_km),
        direction=classify_direction(dx, dy, directions),
    )
