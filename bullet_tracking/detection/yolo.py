from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..errors import DetectorUnavailableError
from .types import Detection, Frame

logger = logging.getLogger(__name__)


class YoloBackend:
    """ultralytics YOLO wrapper implementing the detector backend interface."""

    def __init__(self, model_path: str, device: Optional[str] = None, max_det: int = 100):
        try:
            from ultralytics import YOLO  # type: ignore
        except Exception as e:
            raise DetectorUnavailableError("ultralytics is not installed. `pip install ultralytics`") from e

        weights = Path(model_path)
        if not weights.is_file():
            raise DetectorUnavailableError(f"Model weights not found: {weights}")

        try:
            self._model = YOLO(str(weights))
        except Exception as e:
            raise DetectorUnavailableError(f"Failed to load model {weights}: {e}") from e

        self._device = device
        self._max_det = int(max_det)
        logger.info("[detector] loaded YOLO weights from %s", weights)

    def predict(self, frame: Frame, confidence_threshold: float, iou_threshold: float) -> List[Detection]:
        if frame.image is None:
            raise ValueError(f"frame {frame.index} has no image")

        kwargs = dict(conf=confidence_threshold, iou=iou_threshold, max_det=self._max_det, verbose=False)
        if self._device is not None:
            kwargs["device"] = self._device
        # predict() may write into its input; hand it a private copy.
        results = self._model(frame.image.copy(), **kwargs)[0]

        boxes = results.boxes
        if boxes is None or len(boxes) == 0:
            return []

        xyxy_all = boxes.xyxy.cpu().numpy()
        conf_all = boxes.conf.cpu().numpy()
        return [
            Detection.from_xyxy(*xyxy_all[i].tolist(), score=float(conf_all[i]))
            for i in range(len(xyxy_all))
        ]
