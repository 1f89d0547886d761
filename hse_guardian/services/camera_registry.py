# hse_guardian/services/camera_registry.py
"""
Camera registry — configured cameras and their lifecycle state machine.

    offline ──start──▶ connecting ──acquired──▶ online ──stream ended / stop──▶ offline
                            │
                            ├──device missing / constraints──▶ no-hardware (until reconfigured)
                            └──other error──────────────────▶ offline

Network cameras skip `connecting`: the stream address is taken as given.
Slot claiming (capacity check + transition to `connecting`) happens with no
await in between, so concurrent starts on the event loop cannot both win.
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from hse_guardian.exceptions import AcquisitionError, CameraNotFoundError
from hse_guardian.services.stream_sources import StreamHandle
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)

OFFLINE = "offline"
CONNECTING = "connecting"
ONLINE = "online"
NO_HARDWARE = "no-hardware"

LOCAL = "local"
NETWORK = "network"

CONFIGURABLE_FIELDS = {"name", "location", "connection_type", "device_ref", "stream_url"}
REQUIRED_FIELDS = {"name", "location", "connection_type"}


@dataclass
class CameraRecord:
    id: str
    name: str
    location: str
    connection_type: str = LOCAL     # local | network
    device_ref: Optional[str] = None
    stream_url: Optional[str] = None
    status: str = OFFLINE            # offline | connecting | online | no-hardware
    active: bool = False
    risk_score: float = 0.0
    last_detection_at: Optional[datetime] = None
    fps: int = 0
    stream: Optional[StreamHandle] = field(default=None, repr=False, compare=False)


class CameraRegistry:
    def __init__(self, sources, max_streams: int = 9, nominal_fps: int = 15,
                 on_change: Optional[Callable[[CameraRecord], None]] = None):
        self.sources = sources
        self.max_streams = max_streams
        self.nominal_fps = nominal_fps
        self.on_change = on_change
        self._cameras: Dict[str, CameraRecord] = {}
        # camera_id → token of the acquisition currently allowed to attach
        self._pending: Dict[str, int] = {}
        self._tokens = itertools.count(1)

    # ── Lookup ────────────────────────────────────────────────────────────
    def get(self, camera_id: str) -> CameraRecord:
        cam = self._cameras.get(camera_id)
        if cam is None:
            raise CameraNotFoundError(camera_id)
        return cam

    def list(self) -> List[CameraRecord]:
        return list(self._cameras.values())

    def active_online(self) -> List[CameraRecord]:
        return [c for c in self._cameras.values() if c.active and c.status == ONLINE]

    def is_live(self, camera_id: str) -> bool:
        cam = self._cameras.get(camera_id)
        return cam is not None and cam.active and cam.status == ONLINE

    def slots_in_use(self) -> int:
        return sum(1 for c in self._cameras.values() if c.active or c.status == CONNECTING)

    def __contains__(self, camera_id: str) -> bool:
        return camera_id in self._cameras

    def __len__(self) -> int:
        return len(self._cameras)

    # ── Configuration ─────────────────────────────────────────────────────
    def add(self, camera: CameraRecord) -> CameraRecord:
        if camera.id in self._cameras:
            raise ValueError(f"Camera '{camera.id}' already registered")
        camera.status = NO_HARDWARE if camera.status == NO_HARDWARE else OFFLINE
        camera.active = False
        camera.stream = None
        camera.fps = 0
        self._cameras[camera.id] = camera
        self._notify(camera)
        return camera

    def remove(self, camera_id: str) -> CameraRecord:
        cam = self.stop(camera_id)
        del self._cameras[camera_id]
        logger.info(f"[REGISTRY] {camera_id} removed")
        return cam

    def reconfigure(self, camera_id: str, **fields) -> CameraRecord:
        """Change connection details. Stops the camera and clears no-hardware."""
        unknown = set(fields) - CONFIGURABLE_FIELDS
        if unknown:
            raise ValueError(f"Not configurable: {', '.join(sorted(unknown))}")
        for name in REQUIRED_FIELDS & set(fields):
            if not isinstance(fields[name], str):
                raise ValueError(f"'{name}' must be a string, got {fields[name]!r}")
        if fields.get("connection_type", LOCAL) not in (LOCAL, NETWORK):
            raise ValueError(f"Unknown connection type '{fields['connection_type']}'")

        cam = self.stop(camera_id)
        for name, value in fields.items():
            setattr(cam, name, value)
        cam.status = OFFLINE
        self._notify(cam)
        return cam

    # ── Lifecycle ─────────────────────────────────────────────────────────
    async def start(self, camera_id: str) -> CameraRecord:
        cam = self.get(camera_id)
        if cam.active or cam.status == CONNECTING:
            return cam
        if cam.status == NO_HARDWARE:
            logger.info(f"[REGISTRY] {camera_id} has no hardware — reconfigure before starting")
            return cam
        if self.slots_in_use() >= self.max_streams:
            logger.warning(f"[REGISTRY] {camera_id} not started: {self.max_streams} streams already active")
            return cam

        if cam.connection_type == NETWORK:
            if not cam.stream_url:
                cam.status = NO_HARDWARE
                self._notify(cam)
                return cam
            cam.stream = self.sources.open_network(cam)
            self._set_online(cam)
            return cam

        token = next(self._tokens)
        self._pending[camera_id] = token
        cam.status = CONNECTING
        self._notify(cam)

        try:
            handle = await self.sources.acquire_local(cam)
        except AcquisitionError as e:
            logger.warning(f"[REGISTRY] {camera_id} acquisition failed: {e}")
            self._fail(cam, token, NO_HARDWARE)
            return cam
        except Exception as e:
            logger.error(f"[REGISTRY] {camera_id} stream error: {e}", exc_info=True)
            self._fail(cam, token, OFFLINE)
            return cam

        if self._pending.get(camera_id) != token or self._cameras.get(camera_id) is not cam:
            # Stopped or removed while negotiating
            handle.release()
            logger.info(f"[REGISTRY] {camera_id} acquisition discarded (stopped meanwhile)")
            return cam

        del self._pending[camera_id]
        cam.stream = handle
        self._set_online(cam)
        return cam

    def stop(self, camera_id: str) -> CameraRecord:
        cam = self.get(camera_id)
        self._pending.pop(camera_id, None)
        was_running = cam.active or cam.status in (CONNECTING, ONLINE)
        self._release(cam)
        cam.active = False
        cam.fps = 0
        if cam.status != NO_HARDWARE:
            cam.status = OFFLINE
        if was_running:
            logger.info(f"[REGISTRY] {camera_id} stopped")
            self._notify(cam)
        return cam

    async def start_all(self, predicate: Optional[Callable[[CameraRecord], bool]] = None) -> List[CameraRecord]:
        """Start every inactive camera matching `predicate`, concurrently. Returns those now online."""
        targets = [
            c.id for c in self._cameras.values()
            if not c.active and (predicate is None or predicate(c))
        ]
        results = await asyncio.gather(*(self.start(i) for i in targets), return_exceptions=True)
        for camera_id, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.error(f"[REGISTRY] bulk start failed for {camera_id}: {result}")
        return [c for c in self._cameras.values() if c.id in targets and c.active]

    def stop_all(self) -> List[CameraRecord]:
        running = [
            c.id for c in self._cameras.values()
            if c.active or c.status == CONNECTING
        ]
        return [self.stop(i) for i in running if i in self._cameras]

    def mark_stream_ended(self, camera_id: str) -> None:
        cam = self._cameras.get(camera_id)
        if cam is None or cam.status != ONLINE:
            return
        logger.warning(f"[REGISTRY] {camera_id} stream terminated")
        self._release(cam)
        cam.active = False
        cam.fps = 0
        cam.status = OFFLINE
        self._notify(cam)

    # ── Internals ─────────────────────────────────────────────────────────
    def _set_online(self, cam: CameraRecord) -> None:
        cam.status = ONLINE
        cam.active = True
        cam.fps = self.nominal_fps
        logger.info(f"[REGISTRY] {cam.id} online ({cam.connection_type})")
        self._notify(cam)

    def _fail(self, cam: CameraRecord, token: int, status: str) -> None:
        if self._pending.get(cam.id) != token:
            return
        del self._pending[cam.id]
        if self._cameras.get(cam.id) is not cam:
            return
        cam.status = status
        cam.active = False
        self._notify(cam)

    @staticmethod
    def _release(cam: CameraRecord) -> None:
        handle, cam.stream = cam.stream, None
        if handle is not None:
            handle.release()

    def _notify(self, cam: CameraRecord) -> None:
        if self.on_change is not None:
            self.on_change(cam)
