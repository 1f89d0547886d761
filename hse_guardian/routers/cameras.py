# hse_guardian/routers/cameras.py
"""
Camera configuration, lifecycle and view endpoints.
Start/stop go through the registry state machine; nothing here mutates records directly.
"""

import time
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from hse_guardian.deps import get_engine, require_camera
from hse_guardian.schemas.camera import CameraCreate, CameraOut, CameraUpdate, ViewState, ViewUpdate
from hse_guardian.schemas.safety_score import StatsOut
from hse_guardian.services.camera_registry import LOCAL, CameraRecord
from hse_guardian.services.engine import MonitoringEngine
from hse_guardian.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _new_camera_id(body: CameraCreate) -> str:
    if body.connection_type == LOCAL:
        return f"local-{uuid.uuid4().hex[:8]}"
    return f"ip-{int(time.time() * 1000)}"


def _out(cams):
    # Records hold live stream handles; never let FastAPI deep-copy them.
    if isinstance(cams, list):
        return [CameraOut.model_validate(c) for c in cams]
    return CameraOut.model_validate(cams)


def _view(engine: MonitoringEngine) -> ViewState:
    return ViewState(
        selected_camera_id=engine.selected_camera_id,
        page=engine.page,
        risk_filter=engine.risk_filter,
        total_pages=engine.total_pages(),
        visible_camera_ids=[c.id for c in engine.visible_cameras()],
    )


@router.get("/cameras", response_model=list[CameraOut], summary="List cameras")
def list_cameras(
    page: Optional[int] = Query(default=None, ge=0),
    risk_filter: Optional[str] = Query(default=None, pattern="^(all|high)$"),
    engine: MonitoringEngine = Depends(get_engine),
):
    """All cameras, or one page of them when `page` is given."""
    if page is None:
        return _out(engine.filtered_cameras(risk_filter))
    return _out(engine.visible_cameras(page=page, risk_filter=risk_filter))


@router.post("/cameras", response_model=CameraOut, status_code=201, summary="Add a camera")
def add_camera(body: CameraCreate, engine: MonitoringEngine = Depends(get_engine)):
    camera_id = body.id or _new_camera_id(body)
    if camera_id in engine.registry:
        raise HTTPException(status_code=409, detail=f"Camera '{camera_id}' already exists")
    cam = engine.registry.add(CameraRecord(
        id=camera_id,
        name=body.name,
        location=body.location,
        connection_type=body.connection_type,
        device_ref=body.device_ref,
        stream_url=body.stream_url,
    ))
    logger.info(f"[CAMERAS] Added {cam.id} ({cam.connection_type}) — {cam.name} @ {cam.location}")
    return _out(cam)


@router.post("/cameras/start-page", response_model=list[CameraOut], summary="Start all visible cameras")
async def start_page(engine: MonitoringEngine = Depends(get_engine)):
    visible = {c.id for c in engine.visible_cameras()}
    return _out(await engine.registry.start_all(lambda c: c.id in visible))


@router.post("/cameras/stop-all", response_model=list[CameraOut], summary="Stop every camera")
def stop_all(engine: MonitoringEngine = Depends(get_engine)):
    return _out(engine.registry.stop_all())


@router.get("/cameras/{camera_id}", response_model=CameraOut)
def get_camera(camera_id: str, engine: MonitoringEngine = Depends(get_engine)):
    return _out(require_camera(engine, camera_id))


@router.put("/cameras/{camera_id}", response_model=CameraOut, summary="Reconfigure a camera")
def update_camera(camera_id: str, body: CameraUpdate, engine: MonitoringEngine = Depends(get_engine)):
    """Stops the camera and applies new connection details. Clears no-hardware."""
    require_camera(engine, camera_id)
    return _out(engine.registry.reconfigure(camera_id, **body.model_dump(exclude_unset=True)))


@router.delete("/cameras/{camera_id}", summary="Remove a camera")
def remove_camera(camera_id: str, engine: MonitoringEngine = Depends(get_engine)):
    require_camera(engine, camera_id)
    engine.registry.remove(camera_id)
    if engine.selected_camera_id == camera_id:
        engine.selected_camera_id = None
    return {"camera_id": camera_id, "status": "removed"}


@router.post("/cameras/{camera_id}/start", response_model=CameraOut)
async def start_camera(camera_id: str, engine: MonitoringEngine = Depends(get_engine)):
    require_camera(engine, camera_id)
    return _out(await engine.registry.start(camera_id))


@router.post("/cameras/{camera_id}/stop", response_model=CameraOut)
def stop_camera(camera_id: str, engine: MonitoringEngine = Depends(get_engine)):
    require_camera(engine, camera_id)
    return _out(engine.registry.stop(camera_id))


@router.get("/view", response_model=ViewState, summary="Current selection, page and filter")
def get_view(engine: MonitoringEngine = Depends(get_engine)):
    return _view(engine)


@router.put("/view", response_model=ViewState)
def set_view(body: ViewUpdate, engine: MonitoringEngine = Depends(get_engine)):
    if body.selected_camera_id is not None:
        require_camera(engine, body.selected_camera_id)
    engine.set_view(body.selected_camera_id, body.page, body.risk_filter)
    return _view(engine)


@router.get("/stats", response_model=StatsOut, summary="Dashboard counters")
def get_stats(engine: MonitoringEngine = Depends(get_engine)):
    return engine.stats()
