# hse_guardian/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./hse_guardian.db"
    PERSISTENCE_ENABLED: bool = True
    PERSIST_INTERVAL_SECONDS: float = 5.0

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_IP: str = "127.0.0.1"
    BACKEND_PORT: int = 8080

    # ── Security ──────────────────────────────────────────────────────────
    API_KEY: Optional[str] = None   # Set in .env to enable auth on API endpoints

    # ── Detector ──────────────────────────────────────────────────────────
    DETECTOR_URL: Optional[str] = None   # Inference service; scheduler idles without it
    DETECTOR_TIMEOUT_SECONDS: float = 10.0

    # ── Report / text service ─────────────────────────────────────────────
    REPORT_API_URL: str = "https://api.openai.com/v1"
    REPORT_API_KEY: Optional[str] = None
    REPORT_MODEL: str = "gpt-4o-mini"
    REPORT_MAX_TOKENS: int = 512
    REPORT_TIMEOUT_SECONDS: float = 60.0
    REPORT_WINDOW: int = 20

    # ── Capture ───────────────────────────────────────────────────────────
    CAMERA_FRAME_WIDTH: int = 320
    CAMERA_FRAME_HEIGHT: int = 240
    CAMERA_FPS: int = 15
    NETWORK_FRAME_TIMEOUT_SECONDS: float = 5.0
    MAX_SIMULTANEOUS_STREAMS: int = 9
    SEED_CAMERA_COUNT: int = 0           # Local cameras created when nothing is persisted

    # ── View ──────────────────────────────────────────────────────────────
    CAMERAS_PER_PAGE: int = 9
    RISK_FILTER_THRESHOLD: float = 30.0  # "high risk only" filter
    HIGH_RISK_THRESHOLD: float = 50.0    # counted in /stats

    # ── Detection policy ──────────────────────────────────────────────────
    CONFIDENCE_THRESHOLD: float = 0.6
    DETECTION_COOLDOWN_SECONDS: float = 8.0
    DETECTION_LOG_CAPACITY: int = 100

    # ── Scheduling ────────────────────────────────────────────────────────
    DETECTION_INTERVAL_SECONDS: float = 1.2
    BUSY_BACKOFF_SECONDS: float = 0.1
    IDLE_INTERVAL_SECONDS: float = 1.5
    DECAY_INTERVAL_SECONDS: float = 2.0

    # ── Scoring ───────────────────────────────────────────────────────────
    RISK_DELTA_LOW: float = 5.0
    RISK_DELTA_MEDIUM: float = 10.0
    RISK_DELTA_HIGH: float = 20.0
    RISK_DELTA_CRITICAL: float = 30.0
    SAFETY_PENALTY: float = 1.0
    RISK_DECAY_STEP: float = 2.0
    SAFETY_RECOVERY_STEP: float = 0.5

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "guardian.log"

    @property
    def RISK_DELTAS(self) -> dict:
        return {
            "low": self.RISK_DELTA_LOW,
            "medium": self.RISK_DELTA_MEDIUM,
            "high": self.RISK_DELTA_HIGH,
            "critical": self.RISK_DELTA_CRITICAL,
        }

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
