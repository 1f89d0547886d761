# hse_guardian/services/scheduler.py
"""
Detection and decay timers.

Both loops re-arm themselves with asyncio.sleep after each pass, so detection
never runs faster than the configured interval and a slow detector call
delays only its own next cycle. At most one detector evaluation is in flight
at any time; a cycle that finds one running backs off briefly instead.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from hse_guardian.exceptions import StreamEndedError
from hse_guardian.services.camera_registry import CameraRecord
from hse_guardian.services.detector_adapter import DetectorAdapter
from hse_guardian.services.engine import MonitoringEngine
from hse_guardian.utils.logger import get_logger

logger = get_logger(__name__)


class DetectionScheduler:
    def __init__(
        self,
        engine: MonitoringEngine,
        detector: Optional[DetectorAdapter],
        detection_interval: float = 1.2,
        busy_backoff: float = 0.1,
        idle_interval: float = 1.5,
        decay_interval: float = 2.0,
    ):
        self.engine = engine
        self.detector = detector
        self.detection_interval = detection_interval
        self.busy_backoff = busy_backoff
        self.idle_interval = idle_interval
        self.decay_interval = decay_interval

        self._in_flight = False
        self._tasks: List[asyncio.Task] = []
        self.cycles = 0
        self.last_cycle_at: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    # ── One detection cycle ───────────────────────────────────────────────
    async def run_cycle(self) -> float:
        """Run one cycle and return the delay before the next one."""
        if self._in_flight:
            return self.busy_backoff

        target = self.engine.select_target()
        if target is None or self.detector is None:
            return self.idle_interval

        self._in_flight = True
        try:
            await self._evaluate(target)
        finally:
            self._in_flight = False
            self.cycles += 1
            self.last_cycle_at = datetime.now(timezone.utc)
        return self.detection_interval

    async def _evaluate(self, camera: CameraRecord) -> None:
        handle = camera.stream
        if handle is None:
            return

        try:
            frame = await handle.read_frame()
        except StreamEndedError as e:
            logger.warning(f"[SCHEDULER] {camera.id} stream ended: {e}")
            if camera.stream is handle:
                self.engine.registry.mark_stream_ended(camera.id)
            return
        except Exception as e:
            logger.warning(f"[SCHEDULER] {camera.id} frame unavailable: {e}")
            return

        try:
            predictions = await self.detector.detect(frame)
        except Exception as e:
            logger.error(f"[SCHEDULER] Detector failed on {camera.id}: {e}")
            return

        self.engine.process_predictions(camera.id, predictions)

    # ── Loops ─────────────────────────────────────────────────────────────
    async def _detection_loop(self) -> None:
        while True:
            try:
                delay = await self.run_cycle()
            except Exception as e:
                logger.error(f"[SCHEDULER] Detection cycle crashed: {e}", exc_info=True)
                delay = self.detection_interval
            await asyncio.sleep(delay)

    async def _decay_loop(self) -> None:
        while True:
            await asyncio.sleep(self.decay_interval)
            try:
                self.engine.decay_tick()
            except Exception as e:
                logger.error(f"[SCHEDULER] Decay tick failed: {e}", exc_info=True)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [asyncio.create_task(self._decay_loop(), name="decay-loop")]
        if self.detector is not None:
            self._tasks.append(asyncio.create_task(self._detection_loop(), name="detection-loop"))
            logger.info(f"🚀 Detection loop started ({self.detector!r}, every {self.detection_interval}s)")
        else:
            logger.warning("No detector configured — detection loop disabled.")
        logger.info(f"📉 Decay loop started (every {self.decay_interval}s)")

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
