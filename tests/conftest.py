# tests/conftest.py
"""Shared fakes: stream sources and detectors that need no hardware or network."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio

import pytest

from hse_guardian.services.detector_adapter import DetectorAdapter
from hse_guardian.services.engine import MonitoringEngine
from hse_guardian.services.risk_engine import ScoringPolicy
from hse_guardian.services.stream_sources import StreamHandle


class FakeHandle(StreamHandle):
    def __init__(self, error=None):
        super().__init__()
        self.error = error
        self.close_count = 0

    async def read_frame(self) -> bytes:
        if self.error is not None:
            raise self.error
        return b"\xff\xd8fake-jpeg"

    def _close(self):
        self.close_count += 1


class FakeSources:
    """acquire_local blocks on `gate` when given, so tests can interleave stop/start."""

    def __init__(self, local_error=None, gate=None):
        self.local_error = local_error
        self.gate = gate
        self.handles = []
        self.acquire_calls = 0

    async def acquire_local(self, camera):
        self.acquire_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.local_error is not None:
            raise self.local_error
        handle = FakeHandle()
        self.handles.append(handle)
        return handle

    def open_network(self, camera):
        handle = FakeHandle()
        self.handles.append(handle)
        return handle


class FakeDetector(DetectorAdapter):
    name = "fake"

    def __init__(self, predictions=None, error=None):
        self.predictions = predictions or []
        self.error = error
        self.calls = 0

    async def detect(self, frame: bytes):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.predictions)


@pytest.fixture
def sources():
    return FakeSources()


@pytest.fixture
def engine(sources):
    return MonitoringEngine(sources, policy=ScoringPolicy(), clock=lambda: 1_000.0,
                            wall_clock=lambda: 1_700_000_000.0)
