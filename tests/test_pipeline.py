"""End-to-end runs with replayed detections."""
from __future__ import annotations

import json
import threading

import pytest

from bullet_tracking.aggregator import records_to_json
from bullet_tracking.detection.scripted import ScriptedBackend
from bullet_tracking.errors import FrameSequenceError, InputValidationError
from bullet_tracking.pipeline import BulletTrackingPipeline, build_backend
from tests.fakes import RaisingBackend, StaticBackend
from tests.helpers import boxes_script, det, make_config, make_frame, make_frames

SCENARIO = [
    [[100, 100, 150, 150, 0.9]],
    [[105, 100, 155, 150, 0.9]],
    [],
]


def _run(cfg, per_frame, n_frames=None):
    backend = ScriptedBackend(boxes_script(per_frame))
    with BulletTrackingPipeline(cfg, backend) as pipeline:
        return pipeline.run(make_frames(n_frames or len(per_frame)))


class TestScenario:
    def test_single_bullet_moving_right(self, run_config):
        result = _run(run_config, SCENARIO)
        assert result.frames_processed == 3
        assert not result.cancelled
        (rec,) = result.records
        assert rec.bullet_id == "bullet_1"
        assert rec.bounding_box == (105, 100, 155, 150)
        assert rec.position == (130, 125)
        assert rec.direction == "Right"
        assert rec.speed_kmh == pytest.approx(540.0)

    def test_per_frame_records(self, run_config):
        backend = ScriptedBackend(boxes_script(SCENARIO))
        with BulletTrackingPipeline(run_config, backend) as pipeline:
            results = list(pipeline.iter_frames(make_frames(3)))
        assert [len(r.records) for r in results] == [0, 1, 1]
        assert [len(r.detections) for r in results] == [1, 1, 0]
        assert results[2].tracks[0].misses == 1

    def test_lost_tracks_can_be_excluded(self):
        cfg = make_config(output={"include_lost": False})
        assert _run(cfg, SCENARIO).records == []

    def test_empty_video(self, run_config):
        result = _run(run_config, [], n_frames=0)
        assert result.records == []
        assert result.frames_processed == 0

    def test_deterministic(self, run_config):
        first = records_to_json(_run(run_config, SCENARIO).records)
        second = records_to_json(_run(run_config, SCENARIO).records)
        assert json.dumps(first) == json.dumps(second)

    def test_hungarian_gives_same_records(self, run_config):
        cfg = make_config(tracking={"assignment": "hungarian"})
        assert _run(cfg, SCENARIO).records == _run(run_config, SCENARIO).records

    def test_low_confidence_boxes_are_ignored(self, run_config):
        per_frame = [[[100, 100, 150, 150, 0.3]], [[105, 100, 155, 150, 0.3]]]
        assert _run(run_config, per_frame).records == []


class TestFinalizedTracks:
    PER_FRAME = [[[100, 100, 150, 150, 0.9]], [[100, 100, 150, 150, 0.9]]] + [[]] * 6

    def test_terminated_tracks_hidden_by_default(self, run_config):
        assert _run(run_config, self.PER_FRAME).records == []

    def test_include_finalized(self):
        cfg = make_config(output={"include_finalized": True})
        (rec,) = _run(cfg, self.PER_FRAME).records
        assert rec.bullet_id == "bullet_1"

    def test_finalized_merged_in_numeric_order(self):
        cfg = make_config(output={"include_finalized": True})
        per_frame = self.PER_FRAME + [[[300, 300, 340, 340, 0.9]], [[300, 300, 340, 340, 0.9]]]
        ids = [r.bullet_id for r in _run(cfg, per_frame).records]
        assert ids == ["bullet_1", "bullet_2"]


class TestRunControl:
    def test_cancel_before_start(self, run_config):
        cancel = threading.Event()
        cancel.set()
        backend = StaticBackend([det(100, 100, 150, 150)])
        with BulletTrackingPipeline(run_config, backend) as pipeline:
            result = pipeline.run(make_frames(5), cancel_event=cancel)
        assert result.cancelled
        assert result.frames_processed == 0
        assert backend.calls == 0
        assert any("cancelled" in w for w in result.warnings)

    def test_cancel_mid_run_reports_partial_tracks(self, run_config):
        cancel = threading.Event()

        def frames():
            for frame in make_frames(10):
                yield frame
                if frame.index == 1:
                    cancel.set()

        backend = StaticBackend([det(100, 100, 150, 150)])
        with BulletTrackingPipeline(run_config, backend) as pipeline:
            result = pipeline.run(frames(), cancel_event=cancel)
        assert result.cancelled
        assert result.frames_processed == 2
        assert [r.bullet_id for r in result.records] == ["bullet_1"]

    def test_cancel_after_last_frame_is_not_a_cancellation(self, run_config):
        cancel = threading.Event()

        def frames():
            yield from make_frames(3)
            cancel.set()

        backend = StaticBackend([det(100, 100, 150, 150)])
        with BulletTrackingPipeline(run_config, backend) as pipeline:
            result = pipeline.run(frames(), cancel_event=cancel)
        assert not result.cancelled
        assert result.frames_processed == 3
        assert result.warnings == []

    def test_iter_frames_reports_cancellation(self, run_config):
        cancel = threading.Event()
        backend = StaticBackend([det(100, 100, 150, 150)])
        with BulletTrackingPipeline(run_config, backend) as pipeline:
            seen = []
            for result in pipeline.iter_frames(make_frames(5), cancel_event=cancel):
                seen.append(result.frame.index)
                if result.frame.index == 2:
                    cancel.set()
            assert seen == [0, 1, 2]
            assert pipeline.cancelled

    def test_detector_failure_skips_one_frame(self, run_config):
        backend = RaisingBackend([det(100, 100, 150, 150)], fail_on={2})
        with BulletTrackingPipeline(run_config, backend) as pipeline:
            result = pipeline.run(make_frames(4))
        assert result.frames_processed == 4
        (rec,) = result.records
        assert rec.bullet_id == "bullet_1"

    def test_out_of_order_frames_raise(self, run_config):
        backend = StaticBackend([])
        with BulletTrackingPipeline(run_config, backend) as pipeline:
            with pytest.raises(FrameSequenceError):
                pipeline.run([make_frame(0), make_frame(2), make_frame(1)])

    def test_capacity_warning(self):
        cfg = make_config(tracking={"max_live_tracks": 1})
        backend = StaticBackend([det(100, 100, 150, 150), det(300, 300, 350, 350)])
        with BulletTrackingPipeline(cfg, backend) as pipeline:
            result = pipeline.run(make_frames(2))
        assert len(result.records) == 1
        assert any("live track limit" in w for w in result.warnings)


class TestBuildBackend:
    def test_scripted_from_file(self, run_config, tmp_path):
        path = tmp_path / "dets.json"
        path.write_text(json.dumps({"0": [[1, 2, 3, 4]]}), encoding="utf-8")
        assert isinstance(build_backend(run_config, detections_path=str(path)), ScriptedBackend)

    def test_scripted_without_file(self):
        cfg = make_config(detection={"backend": "scripted"})
        with pytest.raises(InputValidationError):
            build_backend(cfg)
