from __future__ import annotations

from typing import Any, Dict


DEFAULTS: Dict[str, Any] = {
    "detection": {
        "backend": "yolo",  # yolo | scripted
        "model_path": "test/weights4/best.pt",
        "confidence_threshold": 0.5,
        "iou_threshold": 0.5,
        "timeout_sec": 5.0,  # None disables the per-frame timeout
        "device": None,  # passed through to ultralytics (e.g. "cpu", "cuda:0")
    },
    "tracking": {
        "assignment": "greedy",  # greedy | hungarian
        "min_iou": 0.1,
        "center_weight": 0.1,
        "gate_px": 0.0,  # >0 admits non-overlapping pairs within this center distance
        "confirm_hits": 2,
        "max_misses": 5,
        "max_live_tracks": 256,
        "tie_eps": 1e-6,
    },
    "kinematics": {
        "px_per_km": None,  # required calibration input
        "window": 3,
        "directions": 4,  # 4 | 8
    },
    "output": {
        "include_lost": True,
        "include_finalized": False,
    },
    "ui": {
        "window_name": "Bullet tracking",
        "history_len": 20,
        "color_bgr": [0, 255, 255],
    },
    "logging": {
        "enabled": False,
        "path": None,
        "flush_every": 60,
    },
}
