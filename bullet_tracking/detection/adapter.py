from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Iterable, List, Optional, Protocol

import numpy as np

from .nms import filter_by_confidence, non_max_suppression
from .types import Detection, Frame, clip_box, is_valid_box

logger = logging.getLogger(__name__)


class DetectorBackend(Protocol):
    """Black-box model. Anything that can score a frame can back the adapter."""
    def predict(self, frame: Frame, confidence_threshold: float, iou_threshold: float) -> Iterable[Detection]:
        ...


class DetectorTimeout(Exception):
    """The backend did not answer within the per-frame budget."""


class DetectorBusy(Exception):
    """A previous call that timed out is still running on the backend."""


def _sanitize(frame: Frame, raw: Iterable[Any]) -> List[Detection]:
    detections: List[Detection] = []
    for d in raw:
        box = np.asarray(d.box_xyxy, dtype=float).reshape(-1)
        if box.shape != (4,) or not np.all(np.isfinite(box)):
            continue
        if frame.width > 0 and frame.height > 0:
            box = clip_box(box, frame.width, frame.height)
        if not is_valid_box(box):
            continue
        detections.append(Detection(box_xyxy=box, score=float(d.score)))
    return detections


class DetectorAdapter:
    """Enforces the detection contract on top of a backend.

    - boxes below `confidence_threshold` are dropped,
    - degenerate / non-finite boxes are dropped, the rest are clipped to the frame,
    - overlapping duplicates above `iou_threshold` are suppressed,
    - a backend exception, malformed output or a timeout yields an empty list for that frame only.

    With a timeout, each call runs on a daemon thread. A call that overruns is
    abandoned but keeps the backend: later frames get no detections until it
    returns, so the model never serves two frames at once.
    """

    def __init__(self, backend: DetectorBackend, timeout_sec: Optional[float] = None) -> None:
        self._backend = backend
        self._timeout_sec = timeout_sec
        self._inflight: threading.Thread | None = None

    @property
    def backend(self) -> DetectorBackend:
        return self._backend

    @property
    def busy(self) -> bool:
        return self._inflight is not None and self._inflight.is_alive()

    def detect(self, frame: Frame, confidence_threshold: float, iou_threshold: float) -> List[Detection]:
        try:
            raw = self._predict(frame, confidence_threshold, iou_threshold)
            detections = _sanitize(frame, raw)
        except DetectorTimeout:
            logger.warning("[detector] frame %d timed out after %.2fs; no detections", frame.index, self._timeout_sec)
            return []
        except DetectorBusy:
            logger.warning("[detector] frame %d skipped; previous call still running", frame.index)
            return []
        except Exception as e:
            logger.warning("[detector] frame %d failed: %s; no detections", frame.index, e)
            return []

        detections = filter_by_confidence(detections, confidence_threshold)
        return non_max_suppression(detections, iou_threshold)

    def _predict(self, frame: Frame, confidence_threshold: float, iou_threshold: float) -> List[Any]:
        if self._timeout_sec is None:
            return list(self._backend.predict(frame, confidence_threshold, iou_threshold))

        if self.busy:
            raise DetectorBusy()

        result: "queue.Queue[tuple[bool, Any]]" = queue.Queue(maxsize=1)

        def worker() -> None:
            try:
                result.put((True, list(self._backend.predict(frame, confidence_threshold, iou_threshold))))
            except Exception as e:
                result.put((False, e))

        self._inflight = threading.Thread(target=worker, name=f"detector-{frame.index}", daemon=True)
        self._inflight.start()
        try:
            ok, value = result.get(timeout=self._timeout_sec)
        except queue.Empty:
            raise DetectorTimeout() from None
        if not ok:
            raise value
        return value

    def close(self) -> None:
        # A hung call is left to die with the process.
        if self._inflight is not None and not self._inflight.is_alive():
            self._inflight = None
