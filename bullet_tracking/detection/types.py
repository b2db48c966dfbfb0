from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Frame:
    """One decoded video frame. `image` is a read-only view (may be None for replayed runs)."""
    index: int
    timestamp: float  # seconds since stream start
    width: int
    height: int
    image: Optional[np.ndarray] = None

    @classmethod
    def from_image(cls, index: int, timestamp: float, image: np.ndarray) -> "Frame":
        view = image.view()
        view.flags.writeable = False
        return cls(
            index=int(index),
            timestamp=float(timestamp),
            width=int(image.shape[1]),
            height=int(image.shape[0]),
            image=view,
        )


@dataclass(frozen=True)
class Detection:
    """Candidate box returned by the detector adapter."""
    box_xyxy: np.ndarray  # float (x1,y1,x2,y2)
    score: float = 1.0

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float, score: float = 1.0) -> "Detection":
        return cls(box_xyxy=np.array([x1, y1, x2, y2], dtype=float), score=float(score))


def xyxy_center(box_xyxy: np.ndarray) -> Tuple[float, float]:
    x1, y1, x2, y2 = box_xyxy.tolist()
    return (x1 + x2) / 2.0, (y1 + y2) / 2.0


def xyxy_diag(box_xyxy: np.ndarray) -> float:
    x1, y1, x2, y2 = box_xyxy.tolist()
    return max(1.0, float(np.hypot(x2 - x1, y2 - y1)))


def is_valid_box(box_xyxy: np.ndarray) -> bool:
    if box_xyxy.shape != (4,) or not np.all(np.isfinite(box_xyxy)):
        return False
    x1, y1, x2, y2 = box_xyxy.tolist()
    return x1 < x2 and y1 < y2


def clip_box(box_xyxy: np.ndarray, width: int, height: int) -> np.ndarray:
    out = box_xyxy.astype(float).copy()
    out[[0, 2]] = np.clip(out[[0, 2]], 0.0, float(width))
    out[[1, 3]] = np.clip(out[[1, 3]], 0.0, float(height))
    return out


def iou_xyxy(a: np.ndarray, b: np.ndarray) -> float:
    ax1, ay1, ax2, ay2 = a.tolist()
    bx1, by1, bx2, by2 = b.tolist()
    ix1, iy1 = max(ax1, bx1), max(ay1, by1)
    ix2, iy2 = min(ax2, bx2), min(ay2, by2)
    iw, ih = max(0.0, ix2 - ix1), max(0.0, iy2 - iy1)
    inter = iw * ih
    area_a = max(0.0, (ax2 - ax1)) * max(0.0, (ay2 - ay1))
    area_b = max(0.0, (bx2 - bx1)) * max(0.0, (by2 - by1))
    union = area_a + area_b - inter
    if union <= 0.0:
        return 0.0
    return inter / union
