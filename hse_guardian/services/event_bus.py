# hse_guardian/services/event_bus.py
"""Fan-out of engine notifications to the presentation layer."""

from typing import Any, Callable, Dict, List

from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)

CAMERA_UPDATED = "camera_updated"
DETECTION_ADDED = "detection_added"
SCORE_CHANGED = "score_changed"
DETECTIONS_CLEARED = "detections_cleared"

Subscriber = Callable[[str, Dict[str, Any]], None]


class EventBus:
    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback(event_type, payload). Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def _unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event_type, payload)
            except Exception as e:
                logger.error(f"Event subscriber failed on {event_type}: {e}", exc_info=True)

    def __len__(self) -> int:
        return len(self._subscribers)
