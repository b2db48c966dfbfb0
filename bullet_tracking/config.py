from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import InputValidationError


def _deep_update(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge src into dst (in place) and return dst."""
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_update(dst[k], v)
        else:
            dst[k] = v
    return dst


def load_config(path: str | Path | None) -> Dict[str, Any]:
    """Load config overrides from YAML.

    If path is None, returns an empty dict (caller merges defaults).
    """
    if path is None:
        return {}

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in (".yaml", ".yml"):
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise InputValidationError("YAML root must be a mapping/object.")
        return data

    raise InputValidationError(f"Unsupported config extension: {p.suffix}")


def build_effective_config(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return merged config = defaults <- override."""
    merged = json.loads(json.dumps(defaults))  # deep copy via json
    _deep_update(merged, override)
    return merged


def validate_unit_interval(value: Any, name: str) -> float:
    """Return value as float, rejecting anything outside [0, 1] (no clamping)."""
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise InputValidationError(f"{name} must be a number: got {value!r}") from e
    if not math.isfinite(v) or v < 0.0 or v > 1.0:
        raise InputValidationError(f"{name} must be within [0, 1]: got {value!r}")
    return v


def _positive_int(value: Any, name: str, minimum: int = 1) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError) as e:
        raise InputValidationError(f"{name} must be an integer: got {value!r}") from e
    if v < minimum:
        raise InputValidationError(f"{name} must be >= {minimum}: got {v}")
    return v


def _non_negative_float(value: Any, name: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise InputValidationError(f"{name} must be a number: got {value!r}") from e
    if not math.isfinite(v) or v < 0.0:
        raise InputValidationError(f"{name} must be a finite number >= 0: got {value!r}")
    return v


@dataclass(frozen=True)
class DetectionConfig:
    confidence_threshold: float = 0.5
    iou_threshold: float = 0.5
    timeout_sec: Optional[float] = 5.0
    backend: str = "yolo"
    model_path: str = "test/weights4/best.pt"
    device: Optional[str] = None


@dataclass(frozen=True)
class TrackingConfig:
    assignment: str = "greedy"        # greedy | hungarian
    min_iou: float = 0.1              # below this overlap a pair is unassignable
    center_weight: float = 0.1        # weight of normalized center distance in the cost
    gate_px: float = 0.0              # optional center-distance gate for non-overlapping pairs
    confirm_hits: int = 2             # consecutive hits before a track is confirmed
    max_misses: int = 5               # consecutive misses tolerated before termination
    max_live_tracks: int = 256        # cap on live tracks; new tentative tracks are refused beyond it
    tie_eps: float = 1e-6             # costs closer than this are treated as equal


@dataclass(frozen=True)
class KinematicsConfig:
    px_per_km: float
    window: int = 3
    directions: int = 4


@dataclass(frozen=True)
class OutputConfig:
    include_lost: bool = True
    include_finalized: bool = False


@dataclass(frozen=True)
class RunConfig:
    """Immutable configuration for one pipeline run."""
    detection: DetectionConfig
    tracking: TrackingConfig
    kinematics: KinematicsConfig
    output: OutputConfig = field(default_factory=OutputConfig)


def build_run_config(cfg: Dict[str, Any]) -> RunConfig:
    """Validate a merged config dict and freeze it into a RunConfig."""
    det = cfg.get("detection", {})
    trk = cfg.get("tracking", {})
    kin = cfg.get("kinematics", {})
    out = cfg.get("output", {})

    timeout = det.get("timeout_sec", 5.0)
    if timeout is not None:
        timeout = _non_negative_float(timeout, "detection.timeout_sec")
        if timeout == 0.0:
            timeout = None

    backend = str(det.get("backend", "yolo")).lower()
    if backend not in ("yolo", "scripted"):
        raise InputValidationError(f"Unknown detection backend: {backend}")

    detection = DetectionConfig(
        confidence_threshold=validate_unit_interval(det.get("confidence_threshold"), "confidence_threshold"),
        iou_threshold=validate_unit_interval(det.get("iou_threshold"), "iou_threshold"),
        timeout_sec=timeout,
        backend=backend,
        model_path=str(det.get("model_path", "test/weights4/best.pt")),
        device=det.get("device"),
    )

    assignment = str(trk.get("assignment", "greedy")).lower()
    if assignment not in ("greedy", "hungarian"):
        raise InputValidationError(f"Unknown assignment method: {assignment}")

    tracking = TrackingConfig(
        assignment=assignment,
        min_iou=validate_unit_interval(trk.get("min_iou", 0.1), "tracking.min_iou"),
        center_weight=_non_negative_float(trk.get("center_weight", 0.1), "tracking.center_weight"),
        gate_px=_non_negative_float(trk.get("gate_px", 0.0), "tracking.gate_px"),
        confirm_hits=_positive_int(trk.get("confirm_hits", 2), "tracking.confirm_hits"),
        max_misses=_positive_int(trk.get("max_misses", 5), "tracking.max_misses", minimum=0),
        max_live_tracks=_positive_int(trk.get("max_live_tracks", 256), "tracking.max_live_tracks"),
        tie_eps=_non_negative_float(trk.get("tie_eps", 1e-6), "tracking.tie_eps"),
    )

    px_per_km = kin.get("px_per_km")
    if px_per_km is None:
        raise InputValidationError("kinematics.px_per_km is required (pixels per kilometre calibration)")
    px_per_km = _non_negative_float(px_per_km, "kinematics.px_per_km")
    if px_per_km == 0.0:
        raise InputValidationError("kinematics.px_per_km must be > 0")

    directions = _positive_int(kin.get("directions", 4), "kinematics.directions")
    if directions not in (4, 8):
        raise InputValidationError(f"kinematics.directions must be 4 or 8: got {directions}")

    kinematics = KinematicsConfig(
        px_per_km=px_per_km,
        window=_positive_int(kin.get("window", 3), "kinematics.window", minimum=2),
        directions=directions,
    )

    output = OutputConfig(
        include_lost=bool(out.get("include_lost", True)),
        include_finalized=bool(out.get("include_finalized", False)),
    )

    return RunConfig(detection=detection, tracking=tracking, kinematics=kinematics, output=output)
