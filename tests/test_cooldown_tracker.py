# tests/test_cooldown_tracker.py
"""Unit tests for label classification, confidence gating and cooldown suppression."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from hse_guardian.services.cooldown_tracker import (
    CooldownTracker,
    DetectionFilter,
    classify,
    normalize_label,
)
from hse_guardian.services.detector_adapter import Prediction


def make_filter(threshold=0.6, cooldown=8.0):
    return DetectionFilter(threshold, CooldownTracker(cooldown))


class TestClassification:
    @pytest.mark.parametrize("label,category,severity", [
        ("person", "person", "medium"),
        ("No-Helmet", "ppe", "medium"),
        ("no vest", "ppe", "low"),
        ("fall", "fall", "critical"),
        ("forklift", "geofence", "high"),
        ("running", "behavior", "medium"),
    ])
    def test_known_labels(self, label, category, severity):
        cls = classify(label)
        assert cls.category == category
        assert cls.severity == severity

    def test_restricted_object_is_behavior_high(self):
        cls = classify("cell phone")
        assert cls.category == "behavior"
        assert cls.severity == "high"
        assert cls.description == "Restricted Object: cell phone"

    def test_unknown_label_ignored(self):
        assert classify("potted plant") is None

    def test_normalize_label(self):
        assert normalize_label("  Safety-Vest ") == "safety_vest"


class TestDetectionFilter:
    def test_below_threshold_rejected(self):
        f = make_filter()
        assert f.accept("cam1", Prediction("person", 0.5), now=0.0) is None

    def test_nan_confidence_rejected(self):
        f = make_filter()
        assert f.accept("cam1", Prediction("fall", float("nan")), now=0.0) is None

    def test_at_threshold_accepted(self):
        f = make_filter()
        assert f.accept("cam1", Prediction("person", 0.6), now=0.0) is not None

    def test_same_category_suppressed_within_cooldown(self):
        f = make_filter()
        assert f.accept("cam1", Prediction("person", 0.9), now=100.0) is not None
        assert f.accept("cam1", Prediction("person", 0.9), now=102.0) is None

    def test_accepted_again_after_cooldown(self):
        f = make_filter()
        f.accept("cam1", Prediction("person", 0.9), now=100.0)
        assert f.accept("cam1", Prediction("person", 0.9), now=108.0) is not None

    def test_cooldown_is_per_camera_and_category(self):
        f = make_filter()
        f.accept("cam1", Prediction("person", 0.9), now=100.0)
        assert f.accept("cam2", Prediction("person", 0.9), now=101.0) is not None
        assert f.accept("cam1", Prediction("no_helmet", 0.9), now=101.0) is not None

    def test_aliases_share_category_cooldown(self):
        f = make_filter()
        f.accept("cam1", Prediction("no_helmet", 0.9), now=100.0)
        assert f.accept("cam1", Prediction("no_vest", 0.9), now=101.0) is None

    def test_rejected_predictions_do_not_start_cooldown(self):
        tracker = CooldownTracker(8.0)
        f = DetectionFilter(0.6, tracker)
        f.accept("cam1", Prediction("person", 0.3), now=100.0)
        f.accept("cam1", Prediction("sofa", 0.9), now=100.0)
        assert len(tracker) == 0
