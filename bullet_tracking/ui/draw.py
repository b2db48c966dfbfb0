from __future__ import annotations

from typing import Dict, List, Optional, Tuple
import collections

import cv2

from ..detection.types import Detection
from ..tracking.base import Track, TrackState


def put_text(img, text: str, org: Tuple[int, int], scale=0.6, color=(255, 255, 255), thickness=1) -> None:
    cv2.putText(img, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness, cv2.LINE_AA)


def draw_detections(img, detections: List[Detection], color=(0, 255, 0)) -> None:
    for d in detections:
        x1, y1, x2, y2 = map(int, d.box_xyxy.tolist())
        cv2.rectangle(img, (x1, y1), (x2, y2), color, 1)
        put_text(img, f"{d.score:.2f}", (x1, max(0, y2 + 14)), 0.45, color, 1)


class TrackVizState:
    """Per-track center trail for drawing."""

    def __init__(self, history_len: int = 20):
        self.history_len = int(history_len)
        self._hist: Dict[str, collections.deque] = {}

    def push(self, bullet_id: str, cx: int, cy: int) -> None:
        if bullet_id not in self._hist:
            self._hist[bullet_id] = collections.deque(maxlen=self.history_len)
        pts = self._hist[bullet_id]
        if not pts or pts[-1] != (cx, cy):
            pts.append((cx, cy))

    def get(self, bullet_id: str):
        return list(self._hist.get(bullet_id, []))


def draw_tracks(
    img,
    tracks: List[Track],
    track_color=(0, 255, 255),
    lost_color=(128, 128, 128),
    history: Optional[TrackVizState] = None,
) -> None:
    for t in tracks:
        if t.state == TrackState.TENTATIVE:
            continue
        color = lost_color if t.state == TrackState.LOST else track_color
        x1, y1, x2, y2 = map(int, t.box_xyxy.tolist())
        cx, cy = t.last.center
        cx_i, cy_i = int(cx), int(cy)

        cv2.rectangle(img, (x1, y1), (x2, y2), color, 2)
        label = f"{t.bullet_id} {t.kinematics.speed_kmh:.0f}km/h {t.kinematics.direction}"
        put_text(img, label, (x1, max(0, y1 - 10)), 0.55, color, 2)

        if history is not None:
            history.push(t.bullet_id, cx_i, cy_i)
            pts = history.get(t.bullet_id)
            for k in range(1, len(pts)):
                cv2.line(img, pts[k - 1], pts[k], color, 2)


def draw_status(img, frame_index: int, n_tracks: int) -> None:
    put_text(img, f"frame {frame_index}  tracks {n_tracks}", (10, 26), 0.7, (255, 255, 255), 2)
