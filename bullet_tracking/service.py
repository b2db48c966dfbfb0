"""Request/response boundary used by the upload UI.

A video plus two thresholds come in; either a JSON-ready list of bullet records
or a single error message with a failure status goes out.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from .aggregator import records_to_json
from .config import build_effective_config, build_run_config, validate_unit_interval
from .defaults import DEFAULTS
from .detection.adapter import DetectorBackend
from .detection.types import Frame
from .errors import InputValidationError, PipelineError
from .pipeline import BulletTrackingPipeline, build_backend
from .sources.video import VideoFileSource

logger = logging.getLogger(__name__)

FrameSourceFactory = Callable[[Path], Iterable[Frame]]


class ProcessVideoRequest(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    video: Optional[Union[bytes, str, Path]] = None
    confidence_threshold: Any = None
    iou_threshold: Any = None
    px_per_km: Optional[float] = None
    detections_path: Optional[str] = None


class ProcessVideoResponse(BaseModel):
    status: int
    body: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
    warnings: List[str] = []

    @property
    def ok(self) -> bool:
        return self.status == 200


def _error(status: int, message: str) -> ProcessVideoResponse:
    return ProcessVideoResponse(status=status, error=message)


def _materialize_video(video: Union[bytes, str, Path]) -> tuple[Path, bool]:
    """Return (path, is_temporary). Uploaded bytes are spooled to a temp file."""
    if isinstance(video, (bytes, bytearray)):
        if len(video) == 0:
            raise InputValidationError("No video file provided")
        fd, name = tempfile.mkstemp(prefix="bullet_upload_", suffix=".mp4")
        with os.fdopen(fd, "wb") as f:
            f.write(video)
        return Path(name), True
    p = Path(video)
    if not p.is_file():
        raise InputValidationError(f"Video not found: {p}")
    return p, False


def handle_process_video(
    request: ProcessVideoRequest,
    base_config: Optional[Dict[str, Any]] = None,
    backend: Optional[DetectorBackend] = None,
    frame_source: Optional[FrameSourceFactory] = None,
) -> ProcessVideoResponse:
    if request.video is None:
        return _error(400, "No video file provided")

    tmp_path: Optional[Path] = None
    try:
        cfg = build_effective_config(DEFAULTS, base_config or {})
        cfg["detection"]["confidence_threshold"] = validate_unit_interval(
            request.confidence_threshold, "confidence_threshold"
        )
        cfg["detection"]["iou_threshold"] = validate_unit_interval(request.iou_threshold, "iou_threshold")
        if request.px_per_km is not None:
            cfg["kinematics"]["px_per_km"] = request.px_per_km
        run_cfg = build_run_config(cfg)

        video_path, is_tmp = _materialize_video(request.video)
        if is_tmp:
            tmp_path = video_path

        if backend is None:
            backend = build_backend(run_cfg, detections_path=request.detections_path)
        frames = frame_source(video_path) if frame_source is not None else VideoFileSource(video_path)

        with BulletTrackingPipeline(run_cfg, backend) as pipeline:
            result = pipeline.run(frames)

        return ProcessVideoResponse(
            status=200,
            body=records_to_json(result.records),
            warnings=result.warnings,
        )
    except InputValidationError as e:
        logger.warning("[service] rejected request: %s", e)
        return _error(400, str(e))
    except PipelineError as e:
        logger.error("[service] run failed: %s", e)
        return _error(500, str(e))
    except Exception as e:
        logger.exception("[service] error processing video")
        return _error(500, str(e))
    finally:
        if tmp_path is not None:
            try:
                tmp_path.unlink()
            except OSError as e:
                logger.warning("[service] failed to remove %s: %s", tmp_path, e)
