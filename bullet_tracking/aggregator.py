from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .kinematics import DIRECTIONS_4, DIRECTIONS_8
from .tracking.base import UNKNOWN_DIRECTION, Track, TrackState

DIRECTION_LABELS = frozenset(DIRECTIONS_4 + DIRECTIONS_8 + (UNKNOWN_DIRECTION,))
DEFAULT_STATES = (TrackState.CONFIRMED, TrackState.LOST)


class BulletRecord(BaseModel):
    """One row of the results table handed to the UI."""

    model_config = ConfigDict(frozen=True)

    bullet_id: str
    bounding_box: Tuple[int, int, int, int]
    position: Tuple[int, int]
    speed_kmh: float = Field(ge=0.0)
    direction: str

    @field_validator("direction")
    @classmethod
    def _known_direction(cls, v: str) -> str:
        if v not in DIRECTION_LABELS:
            raise ValueError(f"unknown direction label: {v!r}")
        return v

    @model_validator(mode="after")
    def _ordered_box(self) -> "BulletRecord":
        x1, y1, x2, y2 = self.bounding_box
        if not (x1 < x2 and y1 < y2):
            raise ValueError(f"bounding_box must satisfy x_min<x_max and y_min<y_max: {self.bounding_box}")
        return self


def _int_box(box: Tuple[float, float, float, float]) -> Tuple[int, int, int, int]:
    x1, y1, x2, y2 = box
    ix1, iy1 = int(math.floor(x1)), int(math.floor(y1))
    ix2, iy2 = int(math.ceil(x2)), int(math.ceil(y2))
    return ix1, iy1, max(ix2, ix1 + 1), max(iy2, iy1 + 1)


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def track_to_record(track: Track) -> BulletRecord:
    last = track.last
    return BulletRecord(
        bullet_id=track.bullet_id,
        bounding_box=_int_box(last.box_xyxy),
        position=(_round_half_up(last.center[0]), _round_half_up(last.center[1])),
        speed_kmh=round(float(track.kinematics.speed_kmh), 2),
        direction=track.kinematics.direction,
    )


def aggregate_tracks(tracks: Iterable[Track], states: Iterable[TrackState] = DEFAULT_STATES) -> List[BulletRecord]:
    """Records for tracks in `states`, ordered by ascending bullet number."""
    wanted = set(states)
    selected = sorted((t for t in tracks if t.state in wanted), key=lambda t: t.number)
    return [track_to_record(t) for t in selected]


def records_to_json(records: Iterable[BulletRecord]) -> List[Dict[str, Any]]:
    return [r.model_dump(mode="json") for r in records]
