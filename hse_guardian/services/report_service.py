# hse_guardian/services/report_service.py
"""
Shift incident report — turns the most recent detections into a prompt for an
external language model and returns its text.

Failures never propagate: whatever goes wrong becomes the report content.
"""

from abc import ABC, abstractmethod
from typing import List

import httpx

from hse_guardian.services.detection_log import Detection
from hse_guardian.services.engine import MonitoringEngine
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)

NO_KEY_MESSAGE = "Error: No API Key available. Please configure the environment."
EMPTY_LOG_MESSAGE = "No incidents recorded in the current window. Nothing to report."

PROMPT_TEMPLATE = """You are an expert Industrial Safety Officer. Generate a concise but professional shift report based on the following recent detected incidents.

CRITICAL INSTRUCTION: For every incident you mention, you MUST explicitly state the Camera Name and the specific Factory Location (Zone/Section).

Incident Log:
{log}

Format the report with a summary of risks followed by specific actionable items per location."""


class TextService(ABC):
    @abstractmethod
    async def generate(self, prompt: str) -> str:
        ...

    @property
    def configured(self) -> bool:
        return True


class LlmTextService(TextService):
    """OpenAI-compatible chat completions client."""

    def __init__(self, base_url: str, api_key: str = None, model: str = "gpt-4o-mini",
                 max_tokens: int = 512, timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "max_tokens": self.max_tokens,
                },
            )
            response.raise_for_status()
            data = response.json()
        choices = data.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        return content or "No text generated."


def build_incident_log(engine: MonitoringEngine, detections: List[Detection]) -> str:
    lines = []
    for d in detections:
        name, location = engine.camera_label(d.camera_id)
        lines.append(f"- Incident: {d.description} ({d.severity}) | Camera: {name} | Location: {location}")
    return "\n".join(lines)


class ReportService:
    def __init__(self, engine: MonitoringEngine, text_service: TextService, window: int = 20):
        self.engine = engine
        self.text_service = text_service
        self.window = window

    def build_prompt(self) -> tuple:
        detections = self.engine.log.recent(self.window)
        return PROMPT_TEMPLATE.format(log=build_incident_log(self.engine, detections)), len(detections)

    async def generate_report(self) -> tuple:
        """Returns (content, incident_count). Never raises."""
        if not self.text_service.configured:
            return NO_KEY_MESSAGE, 0

        prompt, count = self.build_prompt()
        if count == 0:
            return EMPTY_LOG_MESSAGE, 0

        try:
            content = await self.text_service.generate(prompt)
        except Exception as e:
            logger.error(f"[REPORT] Text service failed: {e}")
            return f"Failed to generate report: {e}", count

        logger.info(f"[REPORT] Shift report generated from {count} incidents")
        return content, count
