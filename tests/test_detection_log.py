# tests/test_detection_log.py
"""Unit tests for the bounded detection log."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime
from hse_guardian.services.detection_log import Detection, DetectionLog


def make_detection(i, camera_id="cam1", severity="medium"):
    return Detection(
        id=f"{camera_id}-{i}-person",
        camera_id=camera_id,
        category="person",
        severity=severity,
        description="Person Detected",
        timestamp=datetime(2026, 1, 1, 8, 0, i % 60),
    )


class TestDetectionLog:
    def test_newest_first(self):
        log = DetectionLog(capacity=10)
        for i in range(3):
            log.add(make_detection(i))
        assert [d.id for d in log.entries()] == ["cam1-2-person", "cam1-1-person", "cam1-0-person"]

    def test_oldest_evicted_past_capacity(self):
        log = DetectionLog(capacity=100)
        for i in range(101):
            log.add(make_detection(i))
        assert len(log) == 100
        assert log.entries()[-1].id == "cam1-1-person"
        assert "cam1-0-person" not in {d.id for d in log}

    def test_filter_by_camera_and_limit(self):
        log = DetectionLog(capacity=10)
        for i in range(4):
            log.add(make_detection(i, camera_id="cam1" if i % 2 else "cam2"))
        assert [d.id for d in log.entries(camera_id="cam1")] == ["cam1-3-person", "cam1-1-person"]
        assert len(log.entries(limit=1)) == 1

    def test_load_keeps_order_and_capacity(self):
        log = DetectionLog(capacity=2)
        log.load([make_detection(9), make_detection(8), make_detection(7)])
        assert [d.id for d in log] == ["cam1-9-person", "cam1-8-person"]

    def test_clear(self):
        log = DetectionLog(capacity=5)
        log.add(make_detection(1))
        log.clear()
        assert len(log) == 0

    def test_zero_capacity_rejected(self):
        with pytest.raises(ValueError):
            DetectionLog(capacity=0)
