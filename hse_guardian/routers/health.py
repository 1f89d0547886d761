# hse_guardian/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + scheduler + camera lifecycle summary.
"""

from collections import Counter
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text

from hse_guardian.database import SessionLocal
from hse_guardian.deps import get_engine, get_scheduler
from hse_guardian.services.engine import MonitoringEngine
from hse_guardian.services.scheduler import DetectionScheduler

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(
    request: Request,
    engine: MonitoringEngine = Depends(get_engine),
    scheduler: DetectionScheduler = Depends(get_scheduler),
):
    """
    Returns:
    - Backend status
    - Database connectivity (when persistence is enabled)
    - Detection scheduler state
    - Camera count per lifecycle status
    """
    result = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backend": "ok",
        "database": "disabled",
        "scheduler": {
            "running": scheduler.running,
            "detector": repr(scheduler.detector) if scheduler.detector else None,
            "cycles": scheduler.cycles,
            "last_cycle_at": scheduler.last_cycle_at.isoformat() if scheduler.last_cycle_at else None,
        },
        "cameras": dict(Counter(c.status for c in engine.registry.list())),
        "detections_logged": len(engine.log),
        "safety_overall": engine.safety.overall,
    }

    if getattr(request.app.state, "state_store", None) is not None:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            result["database"] = "ok"
        except Exception as e:
            result["database"] = f"error: {str(e)}"
            result["status"] = "degraded"
        finally:
            db.close()

    if scheduler.detector is None:
        result["status"] = "degraded"

    return result
