from __future__ import annotations

import pytest

from bullet_tracking import kinematics as kin
from bullet_tracking.tracking.base import Observation, TrackState


def _obs(i, x, y, t):
    return Observation(frame_index=i, timestamp=t, center=(x, y), box_xyxy=(x - 5, y - 5, x + 5, y + 5))


class TestSpeed:
    def test_ten_pixels_per_second_at_ten_px_per_km(self):
        history = [_obs(0, 0.0, 0.0, 0.0), _obs(1, 10.0, 0.0, 1.0)]
        k = kin.estimate(history, TrackState.CONFIRMED, px_per_km=10.0)
        assert k.speed_kmh == 3600.0
        assert k.direction == "Right"

    def test_uses_last_window_observations(self):
        history = [
            _obs(0, 0.0, 0.0, 0.0),
            _obs(1, 10.0, 0.0, 1.0),
            _obs(2, 15.0, 0.0, 2.0),
            _obs(3, 20.0, 0.0, 3.0),
        ]
        assert kin.estimate(history, TrackState.CONFIRMED, px_per_km=10.0, window=3).speed_kmh == 1800.0
        assert kin.estimate(history, TrackState.CONFIRMED, px_per_km=10.0, window=4).speed_kmh == pytest.approx(2400.0)

    def test_lost_tracks_are_estimated(self):
        history = [_obs(0, 0.0, 0.0, 0.0), _obs(1, 0.0, -10.0, 1.0)]
        k = kin.estimate(history, TrackState.LOST, px_per_km=10.0)
        assert k.direction == "Up"
        assert k.speed_kmh == 3600.0

    def test_zero_elapsed_is_zero_speed(self):
        assert kin.speed_kmh(10.0, 0.0, 10.0) == 0.0


class TestInsufficientHistory:
    def test_single_observation(self):
        k = kin.estimate([_obs(0, 5.0, 5.0, 0.0)], TrackState.CONFIRMED, px_per_km=10.0)
        assert (k.speed_kmh, k.direction) == (0.0, "Unknown")

    def test_tentative(self):
        history = [_obs(0, 0.0, 0.0, 0.0), _obs(1, 10.0, 0.0, 1.0)]
        k = kin.estimate(history, TrackState.TENTATIVE, px_per_km=10.0)
        assert (k.speed_kmh, k.direction) == (0.0, "Unknown")

    def test_stationary(self):
        history = [_obs(0, 3.0, 4.0, 0.0), _obs(1, 3.0, 4.0, 1.0)]
        k = kin.estimate(history, TrackState.CONFIRMED, px_per_km=10.0)
        assert (k.speed_kmh, k.direction) == (0.0, "Unknown")


class TestDirection:
    @pytest.mark.parametrize(
        "dx,dy,label",
        [
            (5, 0, "Right"),
            (-5, 0, "Left"),
            (0, -5, "Up"),
            (0, 5, "Down"),
            (3, 3, "Right"),
            (-3, -3, "Left"),
            (1, 4, "Down"),
        ],
    )
    def test_four_way(self, dx, dy, label):
        assert kin.classify_direction(dx, dy, 4) == label

    @pytest.mark.parametrize(
        "dx,dy,label",
        [
            (1, 0, "Right"),
            (1, -1, "Up-Right"),
            (0, -1, "Up"),
            (-1, -1, "Up-Left"),
            (-1, 0, "Left"),
            (-1, 1, "Down-Left"),
            (0, 1, "Down"),
            (1, 1, "Down-Right"),
        ],
    )
    def test_eight_way(self, dx, dy, label):
        assert kin.classify_direction(dx, dy, 8) == label

    def test_no_motion_is_unknown(self):
        assert kin.classify_direction(0.0, 0.0, 4) == "Unknown"
        assert kin.classify_direction(0.0, 0.0, 8) == "Unknown"
