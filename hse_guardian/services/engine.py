# hse_guardian/services/engine.py
"""
MonitoringEngine — the single owner of registry, cooldowns, scores, and log.

The scheduler, the API routers and the WebSocket feed all hold a reference
to one engine instance (stored on app.state); nothing here is global.
Every state change is announced on `engine.events`.
"""

import math
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from hse_guardian.schemas.camera import CameraOut
from hse_guardian.schemas.detection import DetectionOut
from hse_guardian.services.camera_registry import ONLINE, CameraRecord, CameraRegistry
from hse_guardian.services.cooldown_tracker import CooldownTracker, DetectionFilter
from hse_guardian.services.detection_log import Detection, DetectionLog
from hse_guardian.services.detector_adapter import Prediction
from hse_guardian.services.event_bus import (
    CAMERA_UPDATED,
    DETECTION_ADDED,
    DETECTIONS_CLEARED,
    SCORE_CHANGED,
    EventBus,
)
from hse_guardian.services.risk_engine import RiskEngine, SafetyScore, ScoringPolicy
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)


def camera_payload(cam: CameraRecord) -> dict:
    return CameraOut.model_validate(cam).model_dump(mode="json")


def detection_payload(det: Detection) -> dict:
    return DetectionOut.model_validate(det).model_dump(mode="json")


class MonitoringEngine:
    def __init__(
        self,
        sources,
        policy: Optional[ScoringPolicy] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        cameras_per_page: int = 9,
        risk_filter_threshold: float = 30.0,
        high_risk_threshold: float = 50.0,
        nominal_fps: int = 15,
    ):
        self.policy = policy or ScoringPolicy()
        # `clock` drives cooldowns; `wall_clock` only stamps detections
        self.clock = clock
        self.wall_clock = wall_clock
        self.events = EventBus()
        self.registry = CameraRegistry(
            sources,
            max_streams=self.policy.max_streams,
            nominal_fps=nominal_fps,
            on_change=self._camera_changed,
        )
        self.cooldowns = CooldownTracker(self.policy.cooldown_seconds)
        self.filter = DetectionFilter(self.policy.confidence_threshold, self.cooldowns)
        self.risk = RiskEngine(self.policy)
        self.log = DetectionLog(self.policy.log_capacity)

        self.cameras_per_page = cameras_per_page
        self.risk_filter_threshold = risk_filter_threshold
        self.high_risk_threshold = high_risk_threshold

        self.selected_camera_id: Optional[str] = None
        self.page = 0
        self.risk_filter = "all"

        # Bumped on every emitted event; the state store persists on change.
        self.revision = 0

    # ── Notifications ─────────────────────────────────────────────────────
    def _emit(self, event_type: str, payload: dict) -> None:
        self.revision += 1
        self.events.emit(event_type, payload)

    def _camera_changed(self, cam: CameraRecord) -> None:
        self._emit(CAMERA_UPDATED, camera_payload(cam))

    def _score_changed(self) -> None:
        self._emit(SCORE_CHANGED, self.risk.safety.as_dict())

    @property
    def safety(self) -> SafetyScore:
        return self.risk.safety

    # ── View state ────────────────────────────────────────────────────────
    def filtered_cameras(self, risk_filter: Optional[str] = None) -> List[CameraRecord]:
        risk_filter = risk_filter or self.risk_filter
        cams = self.registry.list()
        if risk_filter == "high":
            cams = [c for c in cams if c.risk_score > self.risk_filter_threshold]
        return cams

    def total_pages(self, risk_filter: Optional[str] = None) -> int:
        return math.ceil(len(self.filtered_cameras(risk_filter)) / self.cameras_per_page)

    def visible_cameras(self, page: Optional[int] = None, risk_filter: Optional[str] = None) -> List[CameraRecord]:
        page = self.page if page is None else page
        start = page * self.cameras_per_page
        return self.filtered_cameras(risk_filter)[start:start + self.cameras_per_page]

    def set_view(self, selected_camera_id: Optional[str] = None, page: Optional[int] = None,
                 risk_filter: Optional[str] = None) -> None:
        if selected_camera_id is not None:
            self.registry.get(selected_camera_id)
            self.selected_camera_id = selected_camera_id
        if risk_filter is not None:
            self.risk_filter = risk_filter
        if page is not None:
            self.page = page

    # ── Scheduling support ────────────────────────────────────────────────
    def select_target(self) -> Optional[CameraRecord]:
        """One camera per cycle: selected if live, else first live visible, else first live."""
        live = self.registry.active_online()
        if not live:
            return None
        if self.selected_camera_id and self.registry.is_live(self.selected_camera_id):
            return self.registry.get(self.selected_camera_id)
        for cam in self.visible_cameras():
            if cam.active and cam.status == ONLINE:
                return cam
        return live[0]

    # ── Detection path ────────────────────────────────────────────────────
    def process_predictions(self, camera_id: str, predictions: Iterable[Prediction],
                            now: Optional[float] = None) -> List[Detection]:
        """Filter predictions for one camera and apply the accepted ones. Returns new detections."""
        if not self.registry.is_live(camera_id):
            logger.debug(f"[ENGINE] Discarding stale predictions for {camera_id}")
            return []

        now = self.clock() if now is None else now
        cam = self.registry.get(camera_id)
        accepted: List[Detection] = []

        for pred in predictions:
            cls = self.filter.accept(camera_id, pred, now)
            if cls is None:
                continue
            wall = self.wall_clock()
            timestamp = datetime.fromtimestamp(wall, tz=timezone.utc)
            det = Detection(
                id=f"{camera_id}-{int(wall * 1000)}-{cls.category}",
                camera_id=camera_id,
                category=cls.category,
                severity=cls.severity,
                description=cls.description,
                timestamp=timestamp,
                confidence=pred.confidence,
                bbox=pred.bbox,
            )
            self.log.add(det)
            self.risk.risk_increase(cam, det.severity)
            cam.last_detection_at = timestamp
            self.risk.safety_penalty(det.category)
            accepted.append(det)

            logger.warning(
                f"[DETECTION][{det.severity.upper()}] {det.description} — {cam.name} "
                f"({cam.location}) risk={cam.risk_score:.0f}"
            )
            self._emit(DETECTION_ADDED, detection_payload(det))

        if accepted:
            self._camera_changed(cam)
            self._score_changed()
        return accepted

    def decay_tick(self) -> bool:
        """Relax scores toward baseline. Returns False when nothing needed changing."""
        changed_cams = self.risk.decay_cameras(self.registry.list())
        safety_changed = self.risk.recover_safety()
        for cam in changed_cams:
            self._camera_changed(cam)
        if safety_changed:
            self._score_changed()
        return bool(changed_cams) or safety_changed

    def clear_detections(self) -> None:
        """Operator reset: empty the log and put the safety score back at baseline."""
        self.log.clear()
        self.risk.reset_safety()
        logger.info("[ENGINE] Detection log cleared, safety score reset")
        self._emit(DETECTIONS_CLEARED, {})
        self._score_changed()

    # ── Read models ───────────────────────────────────────────────────────
    def stats(self) -> Dict[str, int]:
        cams = self.registry.list()
        return {
            "active_cameras": sum(1 for c in cams if c.active),
            "high_risk_cameras": sum(1 for c in cams if c.risk_score > self.high_risk_threshold),
            "critical_detections": sum(1 for d in self.log if d.severity == "critical"),
            "total_cameras": len(cams),
        }

    def camera_label(self, camera_id: str) -> tuple:
        """(name, location) for a camera id, tolerant of removed cameras."""
        if camera_id in self.registry:
            cam = self.registry.get(camera_id)
            return cam.name, cam.location
        return camera_id, "Unknown"

    # ── Persistence ───────────────────────────────────────────────────────
    def restore(self, cameras: List[CameraRecord], detections: List[Detection],
                safety: Optional[dict]) -> None:
        """Load persisted state. Cameras always come back inactive."""
        for cam in cameras:
            if cam.id not in self.registry:
                self.registry.add(cam)
        self.log.load(detections)
        if safety:
            self.risk.load_safety(safety)
        logger.info(
            f"[ENGINE] Restored {len(cameras)} cameras, {len(self.log)} detections, "
            f"safety={self.safety.overall:.1f}"
        )
