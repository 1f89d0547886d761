# hse_guardian/schemas/detection.py
from pydantic import AliasChoices, BaseModel, Field
from datetime import datetime
from typing import Optional


class DetectionOut(BaseModel):
    id: str
    camera_id: str
    category: str
    severity: str
    description: str
    timestamp: datetime
    confidence: Optional[float] = None
    bbox: Optional[list[float]] = None

    class Config:
        from_attributes = True


class PredictionIn(BaseModel):
    category: str = Field(validation_alias=AliasChoices("category", "label"))
    confidence: float = Field(ge=0.0, le=1.0)
    bbox: Optional[list[float]] = None


class PredictionBatch(BaseModel):
    predictions: list[PredictionIn]


class PredictionResult(BaseModel):
    camera_id: str
    received: int
    accepted: list[DetectionOut]
