from __future__ import annotations

import numpy as np
import pytest

from bullet_tracking.detection.yolo import YoloBackend
from bullet_tracking.errors import DetectorUnavailableError
from bullet_tracking.tracking.base import Kinematics, Observation, Track, TrackState
from bullet_tracking.ui.draw import TrackVizState, draw_detections, draw_status, draw_tracks
from tests.helpers import det


def _sample_track(state, center=(50.0, 50.0)):
    cx, cy = center
    obs = Observation(frame_index=0, timestamp=0.0, center=center, box_xyxy=(cx - 10, cy - 10, cx + 10, cy + 10))
    return Track(
        bullet_id="bullet_1",
        number=1,
        state=state,
        history=(obs,),
        misses=0,
        hits=2,
        kinematics=Kinematics(speed_kmh=42.0, direction="Up"),
    )


class TestDraw:
    def test_tentative_tracks_not_drawn(self):
        img = np.zeros((100, 100, 3), dtype=np.uint8)
        draw_tracks(img, [_sample_track(TrackState.TENTATIVE)])
        assert int(img.sum()) == 0

    def test_confirmed_track_drawn_and_trail_recorded(self):
        img = np.zeros((100, 100, 3), dtype=np.uint8)
        viz = TrackVizState(history_len=3)
        draw_tracks(img, [_sample_track(TrackState.CONFIRMED)], history=viz)
        draw_tracks(img, [_sample_track(TrackState.CONFIRMED)], history=viz)
        draw_tracks(img, [_sample_track(TrackState.LOST, center=(60.0, 50.0))], history=viz)
        assert int(img.sum()) > 0
        assert viz.get("bullet_1") == [(50, 50), (60, 50)]

    def test_detections_and_status(self):
        img = np.zeros((100, 200, 3), dtype=np.uint8)
        draw_detections(img, [det(10, 10, 40, 40)])
        draw_status(img, 3, 1)
        assert int(img.sum()) > 0


class TestYoloBackend:
    def test_missing_weights(self, tmp_path):
        with pytest.raises(DetectorUnavailableError):
            YoloBackend(str(tmp_path / "missing.pt"))
