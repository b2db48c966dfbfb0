from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

import cv2
import numpy as np

from ..detection.types import Frame
from ..errors import InputValidationError, VideoSourceError

logger = logging.getLogger(__name__)

DEFAULT_FPS = 25.0


def _sane_fps(raw: float) -> float:
    # Some backends report 0/NaN/absurd values.
    if not raw or raw != raw or raw <= 1 or raw > 1000:
        return DEFAULT_FPS
    return float(raw)


class VideoFileSource:
    """Decodes a video file into timestamped frames.

    Timestamps are derived from the frame ordinal and the container FPS, so they
    are strictly increasing even when the backend's position reports are not.
    """

    def __init__(self, path: str | Path) -> None:
        p = Path(path)
        if not p.is_file():
            raise InputValidationError(f"Video not found: {p}")
        self.path = p

        cap = cv2.VideoCapture(str(p))
        if not cap.isOpened():
            cap.release()
            raise VideoSourceError(f"Failed to open video: {p}")
        try:
            self.fps = _sane_fps(cap.get(cv2.CAP_PROP_FPS))
            self.width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            self.height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            self.frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        finally:
            cap.release()
        logger.info(
            "[source] %s: %dx%d @ %.1f fps, %d frame(s)",
            p, self.width, self.height, self.fps, self.frame_count,
        )

    def __iter__(self) -> Iterator[Frame]:
        cap = cv2.VideoCapture(str(self.path))
        if not cap.isOpened():
            raise VideoSourceError(f"Failed to open video: {self.path}")
        try:
            index = 0
            while True:
                ok, image = cap.read()
                if not ok:
                    if index < self.frame_count:
                        logger.warning(
                            "[source] %s: decoding stopped at frame %d of %d; results cover the decoded part only",
                            self.path, index, self.frame_count,
                        )
                    break
                yield Frame.from_image(index, index / self.fps, image)
                index += 1
        finally:
            cap.release()


def frames_from_arrays(images: Iterable[np.ndarray], fps: float = DEFAULT_FPS) -> Iterator[Frame]:
    for index, image in enumerate(images):
        yield Frame.from_image(index, index / float(fps), image)
