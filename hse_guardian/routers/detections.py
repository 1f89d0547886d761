# hse_guardian/routers/detections.py
"""
Detection log, safety score, and push-mode prediction intake.
POST /cameras/{id}/predictions runs the same filter path as the scheduler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from hse_guardian.deps import get_engine, require_camera
from hse_guardian.schemas.detection import DetectionOut, PredictionBatch, PredictionResult
from hse_guardian.schemas.safety_score import SafetyScoreOut
from hse_guardian.services.detector_adapter import Prediction
from hse_guardian.services.engine import MonitoringEngine

router = APIRouter()


@router.get("/detections", response_model=list[DetectionOut], summary="Detection log, newest first")
def list_detections(
    limit: int = Query(default=50, ge=1, le=1000),
    camera_id: Optional[str] = None,
    engine: MonitoringEngine = Depends(get_engine),
):
    return engine.log.entries(limit=limit, camera_id=camera_id)


@router.delete("/detections", response_model=SafetyScoreOut, summary="Clear log and reset safety score")
def clear_detections(engine: MonitoringEngine = Depends(get_engine)):
    engine.clear_detections()
    return engine.safety


@router.get("/safety-score", response_model=SafetyScoreOut)
def get_safety_score(engine: MonitoringEngine = Depends(get_engine)):
    return engine.safety


@router.post("/cameras/{camera_id}/predictions", response_model=PredictionResult,
             summary="Submit detector output for a camera")
def submit_predictions(camera_id: str, body: PredictionBatch,
                       engine: MonitoringEngine = Depends(get_engine)):
    """Predictions for cameras that are not active and online are discarded."""
    require_camera(engine, camera_id)
    predictions = [Prediction(p.category, p.confidence, p.bbox) for p in body.predictions]
    accepted = engine.process_predictions(camera_id, predictions)
    return {"camera_id": camera_id, "received": len(predictions), "accepted": accepted}
