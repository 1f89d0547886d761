# hse_guardian/services/detection_log.py
"""
Bounded, most-recent-first log of accepted detections.
Entries are immutable; once evicted past capacity they are gone.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Deque, Iterator, List, Optional


@dataclass(frozen=True)
class Detection:
    id: str
    camera_id: str
    category: str            # person | ppe | behavior | geofence | fall
    severity: str            # low | medium | high | critical
    description: str
    timestamp: datetime
    confidence: Optional[float] = None
    bbox: Optional[List[float]] = field(default=None, compare=False)


class DetectionLog:
    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("Detection log capacity must be at least 1")
        self.capacity = capacity
        # Left end is the newest entry; maxlen drops from the right (oldest).
        self._entries: Deque[Detection] = deque(maxlen=capacity)

    def add(self, detection: Detection) -> None:
        self._entries.appendleft(detection)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self, limit: Optional[int] = None, camera_id: Optional[str] = None) -> List[Detection]:
        """Snapshot of the log, newest first, optionally filtered by camera."""
        result = []
        for det in self._entries:
            if camera_id is not None and det.camera_id != camera_id:
                continue
            result.append(det)
            if limit is not None and len(result) >= limit:
                break
        return result

    def recent(self, n: int) -> List[Detection]:
        return self.entries(limit=n)

    def load(self, detections: List[Detection]) -> None:
        """Replace contents with `detections` given newest first. Overflow is dropped."""
        self._entries.clear()
        for det in detections[: self.capacity]:
            self._entries.append(det)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Detection]:
        return iter(list(self._entries))
