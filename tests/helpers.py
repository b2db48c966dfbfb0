"""Builders for configs, frames and detections used across tests."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from bullet_tracking.config import RunConfig, build_effective_config, build_run_config
from bullet_tracking.defaults import DEFAULTS
from bullet_tracking.detection.types import Detection, Frame

FPS = 30.0


def make_config(**sections: Dict[str, Any]) -> RunConfig:
    """RunConfig from defaults, a test calibration and per-section overrides."""
    override: Dict[str, Any] = {"kinematics": {"px_per_km": 1000.0}}
    for name, values in sections.items():
        override.setdefault(name, {}).update(values)
    return build_run_config(build_effective_config(DEFAULTS, override))


def make_frame(index: int, timestamp: Optional[float] = None, width: int = 640, height: int = 480) -> Frame:
    ts = index / FPS if timestamp is None else timestamp
    return Frame(index=index, timestamp=ts, width=width, height=height)


def make_frames(n: int) -> List[Frame]:
    return [make_frame(i) for i in range(n)]


def det(x1: float, y1: float, x2: float, y2: float, score: float = 0.9) -> Detection:
    return Detection.from_xyxy(x1, y1, x2, y2, score=score)


def boxes_script(per_frame: Sequence[Iterable[Sequence[float]]]) -> Dict[int, List[List[float]]]:
    """Frame index -> boxes, for ScriptedBackend."""
    return {i: [list(b) for b in boxes] for i, boxes in enumerate(per_frame)}
