# hse_guardian/services/detector_adapter.py
"""
Detector adapter — wraps the external object-detection model.

The model is opaque: it receives one JPEG frame and answers with a list of
predictions {category, confidence, bbox?}. HttpDetectorAdapter talks to a
model served over HTTP:

    POST {DETECTOR_URL}   body: image/jpeg
    200 → [{"category": "person", "confidence": 0.91, "bbox": [x, y, w, h]}, ...]
          or {"predictions": [...]}; "label" is accepted instead of "category".
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import httpx

from hse_guardian.exceptions import DetectorError
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Prediction:
    category: str
    confidence: float
    bbox: Optional[List[float]] = None


class DetectorAdapter(ABC):
    name: str = "base"

    @abstractmethod
    async def detect(self, frame: bytes) -> List[Prediction]:
        """Run inference on a single JPEG frame. May raise; callers treat that as no detections."""
        ...

    def __repr__(self) -> str:
        return f"<Detector: {self.name}>"


def parse_predictions(payload) -> List[Prediction]:
    """Turn a detector JSON payload into Prediction objects, skipping malformed items."""
    if isinstance(payload, dict):
        payload = payload.get("predictions", [])
    if not isinstance(payload, list):
        raise DetectorError(f"Unexpected detector payload: {type(payload).__name__}")

    predictions = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        category = item.get("category") or item.get("label")
        confidence = item.get("confidence", item.get("score"))
        if not isinstance(category, str) or confidence is None:
            continue
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            continue
        if not math.isfinite(confidence):
            continue
        bbox = item.get("bbox")
        predictions.append(Prediction(
            category=category,
            confidence=confidence,
            bbox=list(bbox) if isinstance(bbox, (list, tuple)) else None,
        ))
    return predictions


class HttpDetectorAdapter(DetectorAdapter):
    name = "http"

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    async def detect(self, frame: bytes) -> List[Prediction]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.url, content=frame, headers={"Content-Type": "image/jpeg"}
            )
        if response.status_code != 200:
            raise DetectorError(f"Detector returned HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as e:
            raise DetectorError(f"Detector returned invalid JSON: {e}") from e
        predictions = parse_predictions(payload)
        logger.debug(f"[DETECTOR] {len(predictions)} predictions ({len(frame)} byte frame)")
        return predictions
