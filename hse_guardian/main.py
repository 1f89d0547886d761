# hse_guardian/main.py
"""
FastAPI application entry point.
Wires the monitoring engine, detection scheduler and persistence, then
exposes them through security middleware, error handlers and routers.
"""

import asyncio
import time
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from hse_guardian.config import Settings, settings
from hse_guardian.database import create_tables
from hse_guardian.routers import cameras, detections, events, health, reports
from hse_guardian.services.camera_registry import CameraRecord
from hse_guardian.services.detector_adapter import DetectorAdapter, HttpDetectorAdapter
from hse_guardian.services.engine import MonitoringEngine
from hse_guardian.services.report_service import LlmTextService, ReportService, TextService
from hse_guardian.services.risk_engine import ScoringPolicy
from hse_guardian.services.scheduler import DetectionScheduler
from hse_guardian.services.state_store import StateStore
from hse_guardian.services.stream_sources import StreamSources
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)

OPEN_PATHS = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth for every endpoint except health and docs.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    def __init__(self, app, api_key: str):
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next):
        if request.url.path in OPEN_PATHS:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != self.api_key:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


def seed_cameras(engine: MonitoringEngine, count: int) -> None:
    """Default roster: cam1..camN spread over zones of ten sections."""
    for i in range(count):
        engine.registry.add(CameraRecord(
            id=f"cam{i + 1}",
            name=f"Camera Unit {i + 1}",
            location=f"Zone {i // 10 + 1} - Sec {i % 10 + 1}",
        ))
    if count:
        logger.info(f"📷 Seeded {count} cameras")


def build_engine(cfg: Settings) -> MonitoringEngine:
    sources = StreamSources(
        frame_width=cfg.CAMERA_FRAME_WIDTH,
        frame_height=cfg.CAMERA_FRAME_HEIGHT,
        fps=cfg.CAMERA_FPS,
        network_timeout=cfg.NETWORK_FRAME_TIMEOUT_SECONDS,
    )
    return MonitoringEngine(
        sources,
        policy=ScoringPolicy.from_settings(cfg),
        cameras_per_page=cfg.CAMERAS_PER_PAGE,
        risk_filter_threshold=cfg.RISK_FILTER_THRESHOLD,
        high_risk_threshold=cfg.HIGH_RISK_THRESHOLD,
        nominal_fps=cfg.CAMERA_FPS,
    )


def create_app(
    cfg: Settings = settings,
    engine: Optional[MonitoringEngine] = None,
    detector: Optional[DetectorAdapter] = None,
    text_service: Optional[TextService] = None,
    state_store: Optional[StateStore] = None,
) -> FastAPI:
    engine = engine or build_engine(cfg)
    if detector is None and cfg.DETECTOR_URL:
        detector = HttpDetectorAdapter(cfg.DETECTOR_URL, timeout=cfg.DETECTOR_TIMEOUT_SECONDS)
    text_service = text_service or LlmTextService(
        cfg.REPORT_API_URL,
        api_key=cfg.REPORT_API_KEY,
        model=cfg.REPORT_MODEL,
        max_tokens=cfg.REPORT_MAX_TOKENS,
        timeout=cfg.REPORT_TIMEOUT_SECONDS,
    )
    if state_store is None and cfg.PERSISTENCE_ENABLED:
        state_store = StateStore()

    app = FastAPI(
        title="HSE Guardian API",
        description="Multi-camera hazard monitoring — camera lifecycle, detection scheduling and risk scoring.",
        version="2.4.1",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.engine = engine
    app.state.scheduler = DetectionScheduler(
        engine,
        detector,
        detection_interval=cfg.DETECTION_INTERVAL_SECONDS,
        busy_backoff=cfg.BUSY_BACKOFF_SECONDS,
        idle_interval=cfg.IDLE_INTERVAL_SECONDS,
        decay_interval=cfg.DECAY_INTERVAL_SECONDS,
    )
    app.state.report_service = ReportService(engine, text_service, window=cfg.REPORT_WINDOW)
    app.state.state_store = state_store
    app.state.autosave_task = None

    # ── CORS (allow dashboard on same LAN to call the API) ──────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],   # Restrict to dashboard origin in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if cfg.API_KEY:
        app.add_middleware(APIKeyMiddleware, api_key=cfg.API_KEY)

    # ── Request Timing Middleware ────────────────────────────────────────────
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration = round((time.time() - start) * 1000, 2)
        logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
        return response

    # ── Global Exception Handler ─────────────────────────────────────────────
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Routers ──────────────────────────────────────────────────────────────
    app.include_router(cameras.router,    prefix="/api/v1", tags=["📷 Cameras"])
    app.include_router(detections.router, prefix="/api/v1", tags=["🚨 Detections"])
    app.include_router(reports.router,    prefix="/api/v1", tags=["📝 Reports"])
    app.include_router(health.router,     prefix="/api/v1", tags=["💚 Health"])
    app.include_router(events.router,     tags=["📡 Live Events"])

    # ── Startup ───────────────────────────────────────────────────────────────
    @app.on_event("startup")
    async def startup():
        logger.info("🚀 HSE Guardian starting up...")
        restored = False
        if state_store is not None:
            create_tables()
            logger.info("✅ Database tables ready")
            restored = state_store.load_engine(engine)
        if not restored and len(engine.registry) == 0:
            seed_cameras(engine, cfg.SEED_CAMERA_COUNT)
        logger.info(f"📡 Cameras configured: {len(engine.registry)} (max {cfg.MAX_SIMULTANEOUS_STREAMS} streams)")

        app.state.scheduler.start()
        if state_store is not None:
            app.state.autosave_task = asyncio.create_task(
                state_store.autosave(engine, cfg.PERSIST_INTERVAL_SECONDS), name="state-autosave"
            )
        logger.info(f"🌐 Listening on http://{cfg.BACKEND_IP}:{cfg.BACKEND_PORT}")
        logger.info("📖 API docs at /docs")

    @app.on_event("shutdown")
    async def shutdown():
        logger.info("🛑 HSE Guardian shutting down...")
        await app.state.scheduler.stop()
        task = app.state.autosave_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        engine.registry.stop_all()
        if state_store is not None:
            state_store.save_engine(engine)
            logger.info("💾 State saved")

    return app


app = create_app()
