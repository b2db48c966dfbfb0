from __future__ import annotations

import csv
import os
import time
from typing import Any, Dict, Iterable, List

from ..tracking.base import Track


def default_motion_log_path(prefix_dir: str = "logs", basename_prefix: str = "motion_log") -> str:
    """Return default CSV log path like `logs/motion_log_YYYYmmdd_HHMMSS.csv`."""
    ts = time.strftime("%Y%m%d_%H%M%S")
    return os.path.join(prefix_dir, f"{basename_prefix}_{ts}.csv")


class MotionLogger:
    """Low-overhead CSV logger of per-track kinematics.

    One row per live track per frame: position, box size, state, speed (km/h)
    and direction. Rows are buffered and flushed every `flush_every` frames.
    """

    HEADER = [
        "frame_idx",
        "t_sec",
        "n_detections",
        "bullet_id",
        "state",
        "misses",
        "x",
        "y",
        "w",
        "h",
        "speed_kmh",
        "direction",
    ]

    def __init__(self, path: str, flush_every: int = 60) -> None:
        self.path = path
        self.flush_every = max(1, int(flush_every))
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

        self._fp = open(path, "w", newline="", encoding="utf-8")
        self._wr = csv.writer(self._fp)
        self._wr.writerow(self.HEADER)

        self._buf: List[List[Any]] = []
        self._frames = 0
        self._rows = 0
        self._max_speed: Dict[str, float] = {}

    def log(self, *, frame_idx: int, t_sec: float, n_detections: int, tracks: Iterable[Track]) -> None:
        for t in tracks:
            cx, cy = t.last.center
            x1, y1, x2, y2 = t.last.box_xyxy
            speed = float(t.kinematics.speed_kmh)
            self._buf.append(
                [
                    int(frame_idx),
                    float(t_sec),
                    int(n_detections),
                    t.bullet_id,
                    t.state.value,
                    int(t.misses),
                    int(round(cx)),
                    int(round(cy)),
                    int(round(x2 - x1)),
                    int(round(y2 - y1)),
                    round(speed, 3),
                    t.kinematics.direction,
                ]
            )
            self._rows += 1
            self._max_speed[t.bullet_id] = max(speed, self._max_speed.get(t.bullet_id, 0.0))

        self._frames += 1
        if self._frames % self.flush_every == 0:
            self.flush()

    def flush(self) -> None:
        if not self._buf:
            return
        self._wr.writerows(self._buf)
        self._buf.clear()
        self._fp.flush()

    def close(self) -> None:
        try:
            self.flush()
        finally:
            self._fp.close()

    def summary_text(self) -> str:
        if self._rows <= 0:
            return "(no track samples)"
        top = max(self._max_speed.values())
        return f"frames={self._frames}, rows={self._rows}, tracks={len(self._max_speed)}, max_speed={top:.1f}km/h"
