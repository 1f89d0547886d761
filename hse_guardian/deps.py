# hse_guardian/deps.py
"""FastAPI dependencies — hand the app-owned engine and services to routers."""

from fastapi import HTTPException, Request

from hse_guardian.services.camera_registry import CameraRecord
from hse_guardian.services.engine import MonitoringEngine
from hse_guardian.services.report_service import ReportService
from hse_guardian.services.scheduler import DetectionScheduler


def get_engine(request: Request) -> MonitoringEngine:
    return request.app.state.engine


def get_scheduler(request: Request) -> DetectionScheduler:
    return request.app.state.scheduler


def get_report_service(request: Request) -> ReportService:
    return request.app.state.report_service


def require_camera(engine: MonitoringEngine, camera_id: str) -> CameraRecord:
    if camera_id not in engine.registry:
        raise HTTPException(status_code=404, detail=f"Camera '{camera_id}' not found")
    return engine.registry.get(camera_id)
