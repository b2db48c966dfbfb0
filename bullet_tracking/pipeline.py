from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional

from .aggregator import BulletRecord, aggregate_tracks
from .config import RunConfig
from .detection.adapter import DetectorAdapter, DetectorBackend
from .detection.scripted import ScriptedBackend
from .detection.types import Detection, Frame
from .errors import InputValidationError
from .tracking.base import Track, TrackState
from .tracking.engine import TrackAssociationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    frame: Frame
    detections: List[Detection]
    tracks: List[Track]
    records: List[BulletRecord]


@dataclass(frozen=True)
class RunResult:
    records: List[BulletRecord]
    frames_processed: int
    cancelled: bool = False
    warnings: List[str] = field(default_factory=list)


def build_backend(cfg: RunConfig, detections_path: Optional[str] = None) -> DetectorBackend:
    """Construct the detector backend named by the config.

    Raises DetectorUnavailableError if the model cannot be loaded.
    """
    backend = cfg.detection.backend
    if detections_path is not None or backend == "scripted":
        if detections_path is None:
            raise InputValidationError("scripted backend needs a detections file")
        return ScriptedBackend.from_json(detections_path)

    from .detection.yolo import YoloBackend
    return YoloBackend(cfg.detection.model_path, device=cfg.detection.device)


class BulletTrackingPipeline:
    """Frame Source -> Detector Adapter -> Association Engine -> Kinematics -> Records.

    Frames are handled strictly one after another; a frame's matches are committed
    to the engine before the next frame is detected.
    """

    def __init__(self, cfg: RunConfig, detector: DetectorAdapter | DetectorBackend):
        self._cfg = cfg
        if isinstance(detector, DetectorAdapter):
            self._adapter = detector
        else:
            self._adapter = DetectorAdapter(detector, timeout_sec=cfg.detection.timeout_sec)
        self._engine = TrackAssociationEngine(
            cfg.tracking, cfg.kinematics, iou_threshold=cfg.detection.iou_threshold
        )
        states = [TrackState.CONFIRMED]
        if cfg.output.include_lost:
            states.append(TrackState.LOST)
        self._output_states = tuple(states)
        self._cancelled = False

    @property
    def engine(self) -> TrackAssociationEngine:
        return self._engine

    def process_frame(self, frame: Frame) -> FrameResult:
        detections = self._adapter.detect(
            frame,
            self._cfg.detection.confidence_threshold,
            self._cfg.detection.iou_threshold,
        )
        tracks = self._engine.step(frame, detections)
        return FrameResult(
            frame=frame,
            detections=detections,
            tracks=tracks,
            records=aggregate_tracks(tracks, self._output_states),
        )

    def iter_frames(
        self,
        frames: Iterable[Frame],
        cancel_event: Optional[threading.Event] = None,
    ) -> Iterator[FrameResult]:
        """Process frames in order; stop before the next frame once `cancel_event` is set."""
        self._cancelled = False
        for frame in frames:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("[pipeline] cancelled before frame %d", frame.index)
                self._cancelled = True
                return
            yield self.process_frame(frame)

    @property
    def cancelled(self) -> bool:
        """True when the last `iter_frames` pass stopped on the cancel event."""
        return self._cancelled

    def current_records(self) -> List[BulletRecord]:
        records = aggregate_tracks(self._engine.tracks(), self._output_states)
        if self._cfg.output.include_finalized:
            records += aggregate_tracks(self._engine.finalized(), (TrackState.TERMINATED,))
            records.sort(key=lambda r: int(r.bullet_id.rsplit("_", 1)[-1]))
        return records

    def run(self, frames: Iterable[Frame], cancel_event: Optional[threading.Event] = None) -> RunResult:
        n = 0
        for _ in self.iter_frames(frames, cancel_event=cancel_event):
            n += 1
        cancelled = self._cancelled

        warnings: List[str] = []
        if self._engine.capped_detections:
            warnings.append(
                f"live track limit {self._cfg.tracking.max_live_tracks} reached; "
                f"{self._engine.capped_detections} detection(s) were not tracked"
            )
        if cancelled:
            warnings.append(f"run cancelled after {n} frame(s)")

        records = self.current_records()
        logger.info("[pipeline] %d frame(s) processed, %d track record(s)", n, len(records))
        return RunResult(records=records, frames_processed=n, cancelled=cancelled, warnings=warnings)

    def close(self) -> None:
        self._adapter.close()

    def __enter__(self) -> "BulletTrackingPipeline":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
