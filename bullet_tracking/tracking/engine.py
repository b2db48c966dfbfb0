from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .. import kinematics as kin
from ..config import KinematicsConfig, TrackingConfig
from ..detection.nms import non_max_suppression
from ..detection.types import Detection, Frame, is_valid_box, xyxy_center
from ..errors import FrameSequenceError
from .association import build_cost_matrix, greedy_assignment, hungarian_assignment
from .base import Kinematics, Observation, Track, TrackState, format_bullet_id

logger = logging.getLogger(__name__)


class _InternalTrack:
    __slots__ = (
        "number", "state", "history", "hits", "streak", "misses", "kinematics", "was_confirmed"
    )

    def __init__(self, number: int, obs: Observation) -> None:
        self.number = number
        self.state = TrackState.TENTATIVE
        self.history: List[Observation] = [obs]
        self.hits = 1
        self.streak = 1  # consecutive matched frames
        self.misses = 0
        self.kinematics = Kinematics()
        self.was_confirmed = False

    @property
    def box(self) -> np.ndarray:
        return np.array(self.history[-1].box_xyxy, dtype=float)

    def snapshot(self) -> Track:
        return Track(
            bullet_id=format_bullet_id(self.number),
            number=self.number,
            state=self.state,
            history=tuple(self.history),
            misses=self.misses,
            hits=self.hits,
            kinematics=self.kinematics,
        )


def _observation(frame: Frame, det: Detection) -> Observation:
    box = tuple(float(v) for v in det.box_xyxy.tolist())
    return Observation(
        frame_index=frame.index,
        timestamp=frame.timestamp,
        center=xyxy_center(det.box_xyxy),
        box_xyxy=box,  # type: ignore[arg-type]
    )


class TrackAssociationEngine:
    """Frame-to-frame association with an explicit track lifecycle.

    TENTATIVE -> CONFIRMED after `confirm_hits` consecutive matches (a tentative
    track that misses once is dropped); CONFIRMED <-> LOST while the miss counter
    stays within `max_misses`; TERMINATED beyond it.

    Interface:
      step(frame, detections) -> List[Track]  (live tracks after the frame)
    """

    def __init__(self, tracking: TrackingConfig, kinematics: KinematicsConfig, iou_threshold: float) -> None:
        self._cfg = tracking
        self._kin = kinematics
        self._iou_threshold = float(iou_threshold)
        self._tracks: List[_InternalTrack] = []
        self._finalized: List[Track] = []
        self._next_number = 1
        self._last_frame: Optional[Tuple[int, float]] = None
        self.frames_processed = 0
        self.capped_detections = 0

    @property
    def live_count(self) -> int:
        return len(self._tracks)

    def tracks(self, states: Optional[Iterable[TrackState]] = None) -> List[Track]:
        wanted = set(states) if states is not None else None
        return [
            tr.snapshot()
            for tr in self._tracks
            if wanted is None or tr.state in wanted
        ]

    def finalized(self) -> List[Track]:
        """Tracks that were confirmed at some point and have since been terminated."""
        return list(self._finalized)

    def _check_order(self, frame: Frame) -> None:
        if not math.isfinite(frame.timestamp) or frame.timestamp < 0.0:
            raise FrameSequenceError(f"frame {frame.index} has invalid timestamp {frame.timestamp!r}")
        if self._last_frame is None:
            return
        last_index, last_ts = self._last_frame
        if frame.index <= last_index:
            raise FrameSequenceError(f"frame index {frame.index} does not follow {last_index}")
        if frame.timestamp <= last_ts:
            raise FrameSequenceError(
                f"frame {frame.index} timestamp {frame.timestamp:.6f}s is not after {last_ts:.6f}s"
            )

    def _assign(self, dets: Sequence[Detection]) -> List[Tuple[int, int]]:
        cost = build_cost_matrix(
            [tr.box for tr in self._tracks],
            [d.box_xyxy for d in dets],
            min_iou=self._cfg.min_iou,
            center_weight=self._cfg.center_weight,
            gate_px=self._cfg.gate_px,
        )
        priority = [(tr.misses, tr.number) for tr in self._tracks]
        if self._cfg.assignment == "hungarian":
            return hungarian_assignment(cost, priority, tie_eps=self._cfg.tie_eps)
        return greedy_assignment(cost, priority, tie_eps=self._cfg.tie_eps)

    def step(self, frame: Frame, detections: Sequence[Detection]) -> List[Track]:
        self._check_order(frame)

        dets = [d for d in detections if is_valid_box(np.asarray(d.box_xyxy, dtype=float))]
        # Duplicate boxes on one object must not spawn two tracks, even if the detector under-filters.
        dets = non_max_suppression(dets, self._iou_threshold)

        # Everything below the assignment mutates state; the plan is computed first.
        matches = self._assign(dets)
        matched_trk = {i for i, _ in matches}
        matched_det = {j for _, j in matches}

        for i, j in matches:
            tr = self._tracks[i]
            tr.history.append(_observation(frame, dets[j]))
            tr.hits += 1
            tr.streak += 1
            tr.misses = 0
            if tr.state == TrackState.LOST:
                tr.state = TrackState.CONFIRMED
            elif tr.state == TrackState.TENTATIVE and tr.streak >= self._cfg.confirm_hits:
                tr.state = TrackState.CONFIRMED
                tr.was_confirmed = True

        survivors: List[_InternalTrack] = []
        for i, tr in enumerate(self._tracks):
            if i in matched_trk:
                survivors.append(tr)
                continue
            tr.misses += 1
            tr.streak = 0
            if tr.state == TrackState.TENTATIVE or tr.misses > self._cfg.max_misses:
                tr.state = TrackState.TERMINATED
                if tr.was_confirmed:
                    self._finalized.append(tr.snapshot())
                logger.debug("[engine] %s terminated after %d misses", format_bullet_id(tr.number), tr.misses)
                continue
            tr.state = TrackState.LOST
            survivors.append(tr)
        self._tracks = survivors

        capped = 0
        for j, det in enumerate(dets):
            if j in matched_det:
                continue
            if len(self._tracks) >= self._cfg.max_live_tracks:
                capped += 1
                continue
            tr = _InternalTrack(self._next_number, _observation(frame, det))
            self._next_number += 1
            if tr.streak >= self._cfg.confirm_hits:
                tr.state = TrackState.CONFIRMED
                tr.was_confirmed = True
            self._tracks.append(tr)

        if capped:
            self.capped_detections += capped
            logger.warning(
                "[engine] frame %d: live track limit %d reached, %d detection(s) not tracked",
                frame.index, self._cfg.max_live_tracks, capped,
            )

        for tr in self._tracks:
            tr.kinematics = kin.estimate(
                tr.history,
                tr.state,
                px_per_km=self._kin.px_per_km,
                window=self._kin.window,
                directions=self._kin.directions,
            )

        self._last_frame = (frame.index, frame.timestamp)
        self.frames_processed += 1
        return self.tracks()
