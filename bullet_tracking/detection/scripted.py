from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from ..errors import InputValidationError
from .types import Detection, Frame


def _parse_box(raw: Any) -> Detection:
    if isinstance(raw, Mapping):
        box = raw.get("box") or raw.get("bbox")
        score = raw.get("score", raw.get("confidence", 1.0))
    else:
        box = list(raw)[:4]
        score = list(raw)[4] if len(raw) > 4 else 1.0
    if box is None or len(box) != 4:
        raise InputValidationError(f"Detection box must have 4 values: got {raw!r}")
    return Detection.from_xyxy(*[float(v) for v in box], score=float(score))


class ScriptedBackend:
    """Replays precomputed boxes keyed by frame index.

    Frames with no entry produce no detections. Useful for offline runs where
    inference already happened, and for deterministic tests.
    """

    def __init__(self, boxes_by_frame: Mapping[int, Sequence[Any]]) -> None:
        self._by_frame: Dict[int, List[Detection]] = {
            int(k): [_parse_box(b) for b in v] for k, v in boxes_by_frame.items()
        }

    @classmethod
    def from_json(cls, path: str | Path) -> "ScriptedBackend":
        p = Path(path)
        if not p.exists():
            raise InputValidationError(f"Detections file not found: {p}")
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and isinstance(data.get("frames"), dict):
            data = data["frames"]
        if not isinstance(data, dict):
            raise InputValidationError("Detections JSON must map frame index -> list of boxes")
        return cls({int(k): v for k, v in data.items()})

    def predict(self, frame: Frame, confidence_threshold: float, iou_threshold: float) -> Iterable[Detection]:
        return list(self._by_frame.get(frame.index, []))
