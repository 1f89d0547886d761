# hse_guardian/services/state_store.py
"""
Persists engine state as JSON documents under fixed keys in `app_state`.

Loaded cameras are always inactive: online/connecting come back offline,
no-hardware is kept until the camera is reconfigured.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError

from hse_guardian.database import SessionLocal
from hse_guardian.models.app_state import AppState
from hse_guardian.schemas.camera import CameraOut
from hse_guardian.schemas.detection import DetectionOut
from hse_guardian.schemas.safety_score import SafetyScoreOut
from hse_guardian.services.camera_registry import NO_HARDWARE, OFFLINE, CameraRecord
from hse_guardian.services.detection_log import Detection
from hse_guardian.services.engine import MonitoringEngine, camera_payload, detection_payload
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)

CAMERAS_KEY = "hse_cameras"
DETECTIONS_KEY = "hse_detections"
SAFETY_KEY = "hse_safety_score"


def camera_from_payload(data: dict) -> CameraRecord:
    cam = CameraOut.model_validate(data)
    return CameraRecord(
        id=cam.id,
        name=cam.name,
        location=cam.location,
        connection_type=cam.connection_type,
        device_ref=cam.device_ref,
        stream_url=cam.stream_url,
        status=NO_HARDWARE if cam.status == NO_HARDWARE else OFFLINE,
        active=False,
        risk_score=cam.risk_score,
        last_detection_at=cam.last_detection_at,
    )


def detection_from_payload(data: dict) -> Detection:
    return Detection(**DetectionOut.model_validate(data).model_dump())


class StateStore:
    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory
        self._saved_revision: Optional[int] = None

    def save(self, key: str, payload: Any) -> None:
        db = self.session_factory()
        try:
            row = db.get(AppState, key)
            value = json.dumps(payload)
            if row is None:
                db.add(AppState(key=key, value=value, updated_at=datetime.now(timezone.utc)))
            else:
                row.value = value
                row.updated_at = datetime.now(timezone.utc)
            db.commit()
        finally:
            db.close()

    def load(self, key: str) -> Optional[Any]:
        db = self.session_factory()
        try:
            row = db.get(AppState, key)
            if row is None:
                return None
            try:
                return json.loads(row.value)
            except json.JSONDecodeError as e:
                logger.warning(f"[STATE] Ignoring corrupt '{key}' snapshot: {e}")
                return None
        finally:
            db.close()

    # ── Engine snapshots ──────────────────────────────────────────────────
    def save_engine(self, engine: MonitoringEngine) -> None:
        self.save(CAMERAS_KEY, [camera_payload(c) for c in engine.registry.list()])
        self.save(DETECTIONS_KEY, [detection_payload(d) for d in engine.log])
        self.save(SAFETY_KEY, engine.safety.as_dict())
        self._saved_revision = engine.revision
        logger.debug(f"[STATE] Saved revision {engine.revision}")

    def load_engine(self, engine: MonitoringEngine) -> bool:
        """Restore persisted state into `engine`. False when nothing was stored."""
        raw_cameras = self.load(CAMERAS_KEY)
        raw_detections = self.load(DETECTIONS_KEY)
        raw_safety = self.load(SAFETY_KEY)
        if raw_cameras is None and raw_detections is None and raw_safety is None:
            return False

        cameras: List[CameraRecord] = []
        for item in raw_cameras or []:
            try:
                cameras.append(camera_from_payload(item))
            except ValidationError as e:
                logger.warning(f"[STATE] Skipping invalid camera record: {e}")

        detections: List[Detection] = []
        for item in raw_detections or []:
            try:
                detections.append(detection_from_payload(item))
            except ValidationError as e:
                logger.warning(f"[STATE] Skipping invalid detection record: {e}")

        safety: Optional[dict] = None
        if raw_safety is not None:
            try:
                safety = SafetyScoreOut.model_validate(raw_safety).model_dump()
            except ValidationError as e:
                logger.warning(f"[STATE] Ignoring invalid safety score, keeping baseline: {e}")

        engine.restore(cameras, detections, safety)
        self._saved_revision = engine.revision
        return True

    async def autosave(self, engine: MonitoringEngine, interval: float) -> None:
        """Flush engine state whenever it changed since the last save."""
        while True:
            await asyncio.sleep(interval)
            if engine.revision == self._saved_revision:
                continue
            try:
                self.save_engine(engine)
            except Exception as e:
                logger.error(f"[STATE] Autosave failed: {e}", exc_info=True)
