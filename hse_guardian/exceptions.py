# hse_guardian/exceptions.py
"""
Error taxonomy for camera acquisition, frame reads and detection.
Acquisition errors decide whether a camera lands in no-hardware or offline.
"""


class GuardianError(Exception):
    """Base class for all engine errors."""


class CameraNotFoundError(GuardianError, KeyError):
    def __init__(self, camera_id: str):
        super().__init__(camera_id)
        self.camera_id = camera_id

    def __str__(self) -> str:
        return f"Camera '{self.camera_id}' not found"


class AcquisitionError(GuardianError):
    """Local device cannot be acquired. Terminal until the camera is reconfigured."""


class DeviceNotFoundError(AcquisitionError):
    pass


class ConstraintError(AcquisitionError):
    """Device exists but cannot deliver frames with the requested constraints."""


class StreamEndedError(GuardianError):
    """The stream behind an online camera terminated."""


class FrameUnavailableError(GuardianError):
    """A single frame could not be read; the stream itself is still considered alive."""


class DetectorError(GuardianError):
    pass
