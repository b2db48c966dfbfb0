"""Shared fixtures for bullet tracking tests.

Frames in these tests carry no pixels; detections come from scripted or fake
backends so the pipeline runs without a model, GPU or video decoder.
"""
from __future__ import annotations

import pytest

from bullet_tracking.config import RunConfig
from tests.helpers import make_config


@pytest.fixture()
def run_config() -> RunConfig:
    return make_config()


@pytest.fixture()
def engine_factory():
    """Build a TrackAssociationEngine from per-section config overrides."""
    from bullet_tracking.tracking.engine import TrackAssociationEngine

    def _factory(**sections) -> TrackAssociationEngine:
        cfg = make_config(**sections)
        return TrackAssociationEngine(cfg.tracking, cfg.kinematics, iou_threshold=cfg.detection.iou_threshold)

    return _factory
