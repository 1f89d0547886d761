# hse_guardian/schemas/safety_score.py
from pydantic import BaseModel


class SafetyScoreOut(BaseModel):
    overall: float
    ppe: float
    behavior: float
    environment: float

    class Config:
        from_attributes = True
        allow_inf_nan = False


class StatsOut(BaseModel):
    active_cameras: int
    high_risk_cameras: int
    critical_detections: int
    total_cameras: int
