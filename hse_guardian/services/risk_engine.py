# hse_guardian/services/risk_engine.py
"""
Per-camera risk scores and the site-wide safety score.

Detections push risk up and safety down; the decay tick relaxes both back
toward baseline (risk 0, safety 100). Every value stays within [0, 100].
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable

from hse_guardian.config import Settings

SCORE_MIN = 0.0
SCORE_MAX = 100.0

# Detection category → safety sub-score it erodes
SUBSCORE_FOR_CATEGORY = {
    "ppe": "ppe",
    "behavior": "behavior",
    "fall": "behavior",
    "geofence": "environment",
    "person": "environment",
}


def clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    return max(low, min(high, value))


@dataclass
class SafetyScore:
    overall: float = SCORE_MAX
    ppe: float = SCORE_MAX
    behavior: float = SCORE_MAX
    environment: float = SCORE_MAX

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def at_baseline(self) -> bool:
        return all(v >= SCORE_MAX for v in self.as_dict().values())


@dataclass
class ScoringPolicy:
    risk_deltas: Dict[str, float] = field(default_factory=lambda: {
        "low": 5.0, "medium": 10.0, "high": 20.0, "critical": 30.0,
    })
    safety_penalty: float = 1.0
    risk_decay_step: float = 2.0
    safety_recovery_step: float = 0.5
    confidence_threshold: float = 0.6
    cooldown_seconds: float = 8.0
    log_capacity: int = 100
    max_streams: int = 9

    @classmethod
    def from_settings(cls, s: Settings) -> "ScoringPolicy":
        return cls(
            risk_deltas=s.RISK_DELTAS,
            safety_penalty=s.SAFETY_PENALTY,
            risk_decay_step=s.RISK_DECAY_STEP,
            safety_recovery_step=s.SAFETY_RECOVERY_STEP,
            confidence_threshold=s.CONFIDENCE_THRESHOLD,
            cooldown_seconds=s.DETECTION_COOLDOWN_SECONDS,
            log_capacity=s.DETECTION_LOG_CAPACITY,
            max_streams=s.MAX_SIMULTANEOUS_STREAMS,
        )


class RiskEngine:
    def __init__(self, policy: ScoringPolicy):
        self.policy = policy
        self.safety = SafetyScore()

    def risk_increase(self, camera, severity: str) -> float:
        """Apply a detection to a camera record. Returns the new risk score."""
        delta = self.policy.risk_deltas.get(severity, 0.0)
        camera.risk_score = clamp(camera.risk_score + delta)
        return camera.risk_score

    def safety_penalty(self, category: str) -> SafetyScore:
        penalty = self.policy.safety_penalty
        sub = SUBSCORE_FOR_CATEGORY.get(category)
        if sub is not None:
            setattr(self.safety, sub, clamp(getattr(self.safety, sub) - penalty))
        self.safety.overall = clamp(self.safety.overall - penalty)
        return self.safety

    def decay_cameras(self, cameras: Iterable) -> list:
        """Lower every nonzero risk score by one step. Returns the cameras that changed."""
        changed = []
        step = self.policy.risk_decay_step
        for cam in cameras:
            if cam.risk_score <= SCORE_MIN:
                continue
            cam.risk_score = clamp(cam.risk_score - step)
            changed.append(cam)
        return changed

    def recover_safety(self) -> bool:
        """Raise every safety field by one step. False when already at baseline."""
        if self.safety.at_baseline():
            return False
        step = self.policy.safety_recovery_step
        for name, value in self.safety.as_dict().items():
            setattr(self.safety, name, clamp(value + step))
        return True

    def reset_safety(self) -> SafetyScore:
        self.safety = SafetyScore()
        return self.safety

    def load_safety(self, data: Dict[str, float]) -> None:
        self.safety = SafetyScore(**{
            k: clamp(float(data.get(k, SCORE_MAX))) for k in SafetyScore().as_dict()
        })
