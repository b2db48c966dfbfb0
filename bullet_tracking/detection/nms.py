from __future__ import annotations

from typing import List, Sequence

from .types import Detection, iou_xyxy


def filter_by_confidence(detections: Sequence[Detection], confidence_threshold: float) -> List[Detection]:
    return [d for d in detections if float(d.score) >= confidence_threshold]


def non_max_suppression(detections: Sequence[Detection], iou_threshold: float) -> List[Detection]:
    """Greedy NMS: keep the highest-scoring box, drop any box overlapping a kept one above iou_threshold.

    Equal scores keep input order, so the result is deterministic.
    """
    order = sorted(range(len(detections)), key=lambda i: (-float(detections[i].score), i))
    kept: List[Detection] = []
    for i in order:
        det = detections[i]
        if any(iou_xyxy(det.box_xyxy, k.box_xyxy) > iou_threshold for k in kept):
            continue
        kept.append(det)
    return kept
