# tests/test_state_store.py
"""StateStore: engine snapshots in an in-memory SQLite database."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import FakeSources
from hse_guardian.database import create_tables
from hse_guardian.exceptions import DeviceNotFoundError
from hse_guardian.models.app_state import AppState
from hse_guardian.services.camera_registry import NO_HARDWARE, OFFLINE, CameraRecord
from hse_guardian.services.detector_adapter import Prediction
from hse_guardian.services.engine import MonitoringEngine
from hse_guardian.services.state_store import CAMERAS_KEY, SAFETY_KEY, StateStore


@pytest.fixture
def store():
    db_engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool,
    )
    create_tables(bind=db_engine)
    return StateStore(sessionmaker(autocommit=False, autoflush=False, bind=db_engine))


def fresh_engine():
    return MonitoringEngine(FakeSources(), clock=lambda: 2_000.0)


class TestStateStore:
    def test_missing_keys_load_nothing(self, store):
        assert store.load(CAMERAS_KEY) is None
        assert store.load_engine(fresh_engine()) is False

    def test_save_overwrites_existing_key(self, store):
        store.save(SAFETY_KEY, {"overall": 90})
        store.save(SAFETY_KEY, {"overall": 80})
        assert store.load(SAFETY_KEY) == {"overall": 80}

    def test_corrupt_snapshot_ignored(self, store):
        db = store.session_factory()
        db.add(AppState(key=CAMERAS_KEY, value="{not json"))
        db.commit()
        db.close()
        assert store.load(CAMERAS_KEY) is None

    @pytest.mark.asyncio
    async def test_engine_round_trip(self, store):
        sources = FakeSources()
        engine = MonitoringEngine(sources, clock=lambda: 1_000.0)
        for i in range(3):
            engine.registry.add(CameraRecord(id=f"cam{i + 1}", name=f"Camera Unit {i + 1}", location="Zone 1"))
        await engine.registry.start("cam1")
        engine.process_predictions("cam1", [Prediction("no_helmet", 0.9), Prediction("fall", 0.9)])
        sources.local_error = DeviceNotFoundError("unplugged")
        await engine.registry.start("cam3")

        store.save_engine(engine)
        restored = fresh_engine()
        assert store.load_engine(restored) is True

        cam1 = restored.registry.get("cam1")
        assert cam1.status == OFFLINE
        assert cam1.active is False
        assert cam1.risk_score == 40
        assert cam1.last_detection_at is not None
        assert restored.registry.get("cam3").status == NO_HARDWARE
        assert [d.id for d in restored.log] == [d.id for d in engine.log]
        assert restored.safety == engine.safety

    @pytest.mark.asyncio
    async def test_autosave_flushes_on_change(self, store):
        engine = fresh_engine()
        task = asyncio.create_task(store.autosave(engine, interval=0.01))
        engine.registry.add(CameraRecord(id="cam1", name="Camera Unit 1", location="Zone 1"))
        await asyncio.sleep(0.05)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        cameras = store.load(CAMERAS_KEY)
        assert [c["id"] for c in cameras] == ["cam1"]

    def test_invalid_safety_snapshot_keeps_baseline(self, store):
        store.save(CAMERAS_KEY, [{"id": "cam1", "name": "Camera Unit 1", "location": "Zone 1",
                                  "connection_type": "local", "status": "offline",
                                  "active": False, "risk_score": 0}])
        store.save(SAFETY_KEY, {"overall": None, "ppe": "abc", "behavior": 90, "environment": 90})
        restored = fresh_engine()
        baseline = restored.safety

        assert store.load_engine(restored) is True
        assert restored.registry.get("cam1").name == "Camera Unit 1"
        assert restored.safety == baseline
