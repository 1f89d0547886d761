# hse_guardian/services/stream_sources.py
"""
Stream handles for local capture devices and network cameras.

Local hardware is opened with OpenCV in a worker thread so device negotiation
never blocks the event loop. Network cameras need no negotiation: the stream
address is opaque and a frame is whatever an HTTP GET on it returns.

Every handle's release() is idempotent.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Optional

import cv2
import httpx

from hse_guardian.exceptions import (
    ConstraintError,
    DeviceNotFoundError,
    FrameUnavailableError,
    StreamEndedError,
)
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)


class StreamHandle(ABC):
    def __init__(self):
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @abstractmethod
    async def read_frame(self) -> bytes:
        """Current frame as JPEG bytes."""
        ...

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._close()

    def _close(self) -> None:
        pass


class NetworkStreamHandle(StreamHandle):
    def __init__(self, url: str, timeout: float = 5.0):
        super().__init__()
        self.url = url
        self.timeout = timeout

    async def read_frame(self) -> bytes:
        if self._released:
            raise StreamEndedError(f"Stream {self.url} released")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.url)
        except httpx.HTTPError as e:
            raise FrameUnavailableError(f"{self.url}: {e}") from e
        if response.status_code != 200:
            raise FrameUnavailableError(f"{self.url} returned HTTP {response.status_code}")
        return response.content


class LocalDeviceHandle(StreamHandle):
    def __init__(self, capture, device_ref: Optional[str] = None):
        super().__init__()
        self.device_ref = device_ref
        self._capture = capture
        self._lock = threading.Lock()

    def _grab_jpeg(self) -> bytes:
        with self._lock:
            if self._released:
                raise StreamEndedError(f"Device {self.device_ref} released")
            ok, frame = self._capture.read()
        if not ok:
            raise StreamEndedError(f"Device {self.device_ref} stopped delivering frames")
        ok, buf = cv2.imencode(".jpg", frame)
        if not ok:
            raise FrameUnavailableError(f"JPEG encoding failed for device {self.device_ref}")
        return buf.tobytes()

    async def read_frame(self) -> bytes:
        return await asyncio.to_thread(self._grab_jpeg)

    def _close(self) -> None:
        with self._lock:
            self._capture.release()
        logger.debug(f"[CAPTURE] Released device {self.device_ref}")


def _capture_source(device_ref: Optional[str]):
    if device_ref is None or device_ref == "":
        return 0
    return int(device_ref) if device_ref.isdigit() else device_ref


class StreamSources:
    """Creates stream handles for camera records."""

    def __init__(self, frame_width: int = 320, frame_height: int = 240, fps: int = 15,
                 network_timeout: float = 5.0):
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.fps = fps
        self.network_timeout = network_timeout

    def _open_device(self, device_ref: Optional[str]):
        capture = cv2.VideoCapture(_capture_source(device_ref))
        if not capture.isOpened():
            capture.release()
            raise DeviceNotFoundError(f"No capture device at '{device_ref or 0}'")

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)
        capture.set(cv2.CAP_PROP_FPS, self.fps)

        ok, _frame = capture.read()
        if not ok:
            capture.release()
            raise ConstraintError(
                f"Device '{device_ref or 0}' opened but delivers no frames at "
                f"{self.frame_width}x{self.frame_height}@{self.fps}"
            )
        return capture

    async def acquire_local(self, camera) -> StreamHandle:
        """Negotiate a local device. Raises DeviceNotFoundError / ConstraintError on failure."""
        capture = await asyncio.to_thread(self._open_device, camera.device_ref)
        logger.info(f"[CAPTURE] {camera.id} acquired device {camera.device_ref or 0}")
        return LocalDeviceHandle(capture, camera.device_ref)

    def open_network(self, camera) -> StreamHandle:
        return NetworkStreamHandle(camera.stream_url, timeout=self.network_timeout)
