from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from typing import Any, Dict

import cv2

from .aggregator import records_to_json
from .config import build_effective_config, build_run_config, load_config
from .defaults import DEFAULTS
from .errors import InputValidationError, PipelineError
from .pipeline import BulletTrackingPipeline, build_backend
from .runtime import close_motion_logger, create_motion_logger, log_motion_sample, render_frame
from .sources.video import VideoFileSource
from .ui.draw import TrackVizState

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="bullet-track", description="Detect and track bullets in a video.")
    ap.add_argument("video", help="input video file")
    ap.add_argument("--config", default=None, help="YAML config with overrides of the defaults")
    ap.add_argument("-c", "--confidence", default=None, type=float, help="detection confidence threshold [0,1]")
    ap.add_argument("-i", "--iou", default=None, type=float, help="IOU threshold for duplicate suppression [0,1]")
    ap.add_argument("--px-per-km", default=None, type=float, help="calibration: pixels per kilometre")
    ap.add_argument("--detections", default=None, help="replay per-frame boxes from JSON instead of running a model")
    ap.add_argument("--model", default=None, help="YOLO weights path")
    ap.add_argument("--include-finalized", action="store_true", help="also report tracks that ended before the last frame")
    ap.add_argument("-d", "--display", action="store_true", help="show the annotated video while processing")
    ap.add_argument("-l", "--log", action="store_true", help="record per-track kinematics to CSV")
    ap.add_argument("--log-path", default=None, help="CSV path (default logs/motion_log_YYYYmmdd_HHMMSS.csv)")
    ap.add_argument("--log-flush-every", default=None, type=int, help="flush the CSV every N frames (default 60)")
    ap.add_argument("-o", "--output", default=None, help="write the JSON result here instead of stdout")
    ap.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return ap.parse_args(argv)


def _apply_cli_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> None:
    if args.confidence is not None:
        cfg["detection"]["confidence_threshold"] = args.confidence
    if args.iou is not None:
        cfg["detection"]["iou_threshold"] = args.iou
    if args.px_per_km is not None:
        cfg["kinematics"]["px_per_km"] = args.px_per_km
    if args.model is not None:
        cfg["detection"]["model_path"] = args.model
    if args.detections is not None:
        cfg["detection"]["backend"] = "scripted"
    if args.include_finalized:
        cfg["output"]["include_finalized"] = True

    cfg["logging"]["enabled"] = bool(args.log or cfg["logging"].get("enabled", False))
    if args.log_path is not None:
        cfg["logging"]["path"] = str(args.log_path)
    if args.log_flush_every is not None:
        cfg["logging"]["flush_every"] = int(args.log_flush_every)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        override = load_config(args.config) if args.config else {}
        cfg = build_effective_config(DEFAULTS, override)
        _apply_cli_overrides(cfg, args)
        run_cfg = build_run_config(cfg)
        source = VideoFileSource(args.video)
        backend = build_backend(run_cfg, detections_path=args.detections)
    except (InputValidationError, FileNotFoundError) as e:
        logger.error("%s", e)
        return 2
    except PipelineError as e:
        logger.error("%s", e)
        return 1

    cancel = threading.Event()

    def _on_sigint(signum, frame) -> None:
        logger.warning("interrupt received; finishing the current frame")
        cancel.set()

    prev_handler = signal.signal(signal.SIGINT, _on_sigint)

    win_name = str(cfg["ui"]["window_name"])
    viz = TrackVizState(history_len=int(cfg["ui"]["history_len"]))
    track_color = tuple(int(x) for x in cfg["ui"]["color_bgr"])
    if args.display:
        cv2.namedWindow(win_name, cv2.WINDOW_NORMAL)

    motion_logger = None
    pipeline = BulletTrackingPipeline(run_cfg, backend)
    n_frames = 0
    try:
        motion_logger = create_motion_logger(cfg["logging"])
        for result in pipeline.iter_frames(source, cancel_event=cancel):
            n_frames += 1
            log_motion_sample(motion_logger, result)
            if args.display and render_frame(
                result, track_color_bgr=track_color, history=viz, win_name=win_name
            ):
                break
    except InputValidationError as e:
        logger.error("%s", e)
        return 2
    except PipelineError as e:
        logger.error("%s", e)
        return 1
    finally:
        signal.signal(signal.SIGINT, prev_handler)
        close_motion_logger(motion_logger)
        pipeline.close()
        if args.display:
            cv2.destroyAllWindows()

    if pipeline.engine.capped_detections:
        logger.warning(
            "live track limit reached; %d detection(s) were not tracked", pipeline.engine.capped_detections
        )
    if pipeline.cancelled:
        logger.warning("run cancelled after %d frame(s); reporting tracks up to that frame", n_frames)

    payload = json.dumps(records_to_json(pipeline.current_records()), indent=2)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(payload + "\n")
        logger.info("wrote %s", args.output)
    else:
        sys.stdout.write(payload + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
