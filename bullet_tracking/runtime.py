from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

import cv2

from .pipeline import FrameResult
from .ui.draw import TrackVizState, draw_detections, draw_status, draw_tracks
from .utils.motion_logger import MotionLogger, default_motion_log_path

logger = logging.getLogger(__name__)


def create_motion_logger(logging_cfg: Dict[str, Any]) -> MotionLogger | None:
    if not logging_cfg.get("enabled", False):
        return None

    log_path = logging_cfg.get("path") or default_motion_log_path()
    flush_every = int(logging_cfg.get("flush_every", 60))
    motion_logger = MotionLogger(str(log_path), flush_every=flush_every)
    logger.info("motion log enabled: %s", motion_logger.path)
    return motion_logger


def log_motion_sample(motion_logger: MotionLogger | None, result: FrameResult) -> None:
    if motion_logger is None:
        return
    motion_logger.log(
        frame_idx=result.frame.index,
        t_sec=result.frame.timestamp,
        n_detections=len(result.detections),
        tracks=result.tracks,
    )


def render_frame(
    result: FrameResult,
    *,
    track_color_bgr: Tuple[int, int, int],
    history: TrackVizState,
    win_name: str,
) -> bool:
    """Draw the frame's tracks and show it. Returns True when the user pressed `q`."""
    if result.frame.image is None:
        return False
    img = result.frame.image.copy()
    draw_detections(img, result.detections)
    draw_tracks(img, result.tracks, track_color=track_color_bgr, history=history)
    draw_status(img, result.frame.index, len(result.records))

    cv2.imshow(win_name, img)
    return bool(cv2.waitKey(1) & 0xFF == ord("q"))


def close_motion_logger(motion_logger: MotionLogger | None) -> None:
    if motion_logger is None:
        return
    try:
        motion_logger.close()
        logger.info("motion log saved: %s (%s)", motion_logger.path, motion_logger.summary_text())
    except Exception as e:
        logger.warning("motion logger close failed: %s", e)
