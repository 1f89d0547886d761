# hse_guardian/services/cooldown_tracker.py
"""
Detection filtering: confidence threshold, label classification, and
per-(camera, category) cooldown suppression.

The cooldown bounds the alert rate for a camera/category pair no matter how
often the detector reports the same thing.
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from hse_guardian.services.detector_adapter import Prediction
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Classification:
    category: str
    severity: str
    description: str


_PERSON = Classification("person", "medium", "Person Detected")
_HELMET = Classification("ppe", "medium", "Missing Helmet")
_VEST = Classification("ppe", "low", "Missing Vest")
_FALL = Classification("fall", "critical", "Fall Detected")
_RUNNING = Classification("behavior", "medium", "Running in Zone")
_VEHICLE = Classification("geofence", "high", "Restricted Area Access")

CLASSIFICATION_TABLE: Dict[str, Classification] = {
    "person": _PERSON,
    "no_helmet": _HELMET,
    "no_hardhat": _HELMET,
    "no_vest": _VEST,
    "no_safety_vest": _VEST,
    "fall": _FALL,
    "fallen_person": _FALL,
    "running": _RUNNING,
    "car": _VEHICLE,
    "truck": _VEHICLE,
    "forklift": _VEHICLE,
    "motorcycle": _VEHICLE,
}

RESTRICTED_OBJECTS = {"knife", "scissors", "cell_phone", "smoking", "fire"}


def normalize_label(label: str) -> str:
    return label.strip().lower().replace("-", "_").replace(" ", "_")


def classify(label: str) -> Optional[Classification]:
    """Map a raw detector label to (category, severity, description). None = not a hazard."""
    key = normalize_label(label)
    if key in CLASSIFICATION_TABLE:
        return CLASSIFICATION_TABLE[key]
    if key in RESTRICTED_OBJECTS:
        return Classification("behavior", "high", f"Restricted Object: {key.replace('_', ' ')}")
    return None


class CooldownTracker:
    """Last accepted timestamp per (camera_id, category). Entries are only ever overwritten."""

    def __init__(self, window_seconds: float):
        self.window_seconds = window_seconds
        self._last: Dict[Tuple[str, str], float] = {}

    def try_accept(self, camera_id: str, category: str, now: float) -> bool:
        key = (camera_id, category)
        last = self._last.get(key)
        if last is not None and now - last < self.window_seconds:
            return False
        self._last[key] = now
        return True

    def last_accepted(self, camera_id: str, category: str) -> Optional[float]:
        return self._last.get((camera_id, category))

    def __len__(self) -> int:
        return len(self._last)


class DetectionFilter:
    def __init__(self, confidence_threshold: float, cooldown: CooldownTracker):
        self.confidence_threshold = confidence_threshold
        self.cooldown = cooldown

    def accept(self, camera_id: str, prediction: Prediction, now: float) -> Optional[Classification]:
        """Return the classification if the prediction should become a detection."""
        if not math.isfinite(prediction.confidence) or prediction.confidence < self.confidence_threshold:
            return None
        cls = classify(prediction.category)
        if cls is None:
            return None
        if not self.cooldown.try_accept(camera_id, cls.category, now):
            logger.debug(f"[COOLDOWN] {camera_id}/{cls.category} suppressed")
            return None
        return cls
