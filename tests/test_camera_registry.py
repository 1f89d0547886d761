# tests/test_camera_registry.py
"""Camera lifecycle: start/stop, stream cap, acquisition failures and stale acquisitions."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio

import pytest

from conftest import FakeHandle, FakeSources
from hse_guardian.exceptions import CameraNotFoundError, ConstraintError, DeviceNotFoundError
from hse_guardian.services.camera_registry import (
    CONNECTING,
    NETWORK,
    NO_HARDWARE,
    OFFLINE,
    ONLINE,
    CameraRecord,
    CameraRegistry,
)


def make_registry(sources=None, cameras=3, max_streams=9):
    changes = []
    registry = CameraRegistry(sources or FakeSources(), max_streams=max_streams,
                              nominal_fps=15, on_change=changes.append)
    for i in range(cameras):
        registry.add(CameraRecord(id=f"cam{i + 1}", name=f"Camera Unit {i + 1}", location="Zone 1"))
    changes.clear()
    return registry, changes


class TestCameraLifecycle:
    @pytest.mark.asyncio
    async def test_start_brings_camera_online(self):
        registry, changes = make_registry()
        cam = await registry.start("cam1")

        assert cam.status == ONLINE
        assert cam.active is True
        assert cam.fps == 15
        assert cam.stream is not None
        assert len(changes) == 2   # connecting, then online

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        sources = FakeSources()
        registry, _ = make_registry(sources)
        await registry.start("cam1")
        await registry.start("cam1")

        assert sources.acquire_calls == 1
        assert registry.slots_in_use() == 1

    @pytest.mark.asyncio
    async def test_stop_releases_stream(self):
        sources = FakeSources()
        registry, _ = make_registry(sources)
        await registry.start("cam1")
        cam = registry.stop("cam1")

        assert cam.status == OFFLINE
        assert cam.active is False
        assert cam.fps == 0
        assert cam.stream is None
        assert sources.handles[0].released

    def test_stop_offline_camera_is_silent(self):
        registry, changes = make_registry()
        registry.stop("cam1")
        assert changes == []

    def test_unknown_camera_raises(self):
        registry, _ = make_registry()
        with pytest.raises(CameraNotFoundError):
            registry.get("nope")

    def test_duplicate_add_rejected(self):
        registry, _ = make_registry()
        with pytest.raises(ValueError):
            registry.add(CameraRecord(id="cam1", name="Dup", location="Zone 1"))


class TestStreamCap:
    @pytest.mark.asyncio
    async def test_bulk_start_respects_cap(self):
        registry, _ = make_registry(cameras=10, max_streams=9)
        started = await registry.start_all()

        assert len(started) == 9
        assert len(registry.active_online()) == 9
        assert sum(1 for c in registry.list() if c.status == OFFLINE) == 1

    @pytest.mark.asyncio
    async def test_connecting_cameras_count_toward_cap(self):
        gate = asyncio.Event()
        registry, _ = make_registry(FakeSources(gate=gate), cameras=3, max_streams=2)

        first = asyncio.create_task(registry.start("cam1"))
        second = asyncio.create_task(registry.start("cam2"))
        await asyncio.sleep(0)
        third = await registry.start("cam3")

        assert third.status == OFFLINE
        assert registry.get("cam1").status == CONNECTING

        gate.set()
        await asyncio.gather(first, second)
        assert len(registry.active_online()) == 2

    @pytest.mark.asyncio
    async def test_slot_frees_after_stop(self):
        registry, _ = make_registry(cameras=2, max_streams=1)
        await registry.start("cam1")
        assert (await registry.start("cam2")).status == OFFLINE

        registry.stop("cam1")
        assert (await registry.start("cam2")).status == ONLINE


class TestAcquisitionFailures:
    @pytest.mark.asyncio
    async def test_missing_device_goes_no_hardware(self):
        registry, _ = make_registry(FakeSources(local_error=DeviceNotFoundError("no device")))
        cam = await registry.start("cam1")

        assert cam.status == NO_HARDWARE
        assert cam.active is False
        assert registry.slots_in_use() == 0

    @pytest.mark.asyncio
    async def test_constraint_failure_goes_no_hardware(self):
        registry, _ = make_registry(FakeSources(local_error=ConstraintError("bad resolution")))
        assert (await registry.start("cam1")).status == NO_HARDWARE

    @pytest.mark.asyncio
    async def test_other_error_goes_offline(self):
        registry, _ = make_registry(FakeSources(local_error=RuntimeError("driver crashed")))
        cam = await registry.start("cam1")

        assert cam.status == OFFLINE
        assert cam.active is False

    @pytest.mark.asyncio
    async def test_no_hardware_is_sticky_until_reconfigured(self):
        sources = FakeSources(local_error=DeviceNotFoundError("no device"))
        registry, _ = make_registry(sources)
        await registry.start("cam1")

        sources.local_error = None
        assert (await registry.start("cam1")).status == NO_HARDWARE
        assert registry.stop("cam1").status == NO_HARDWARE

        registry.reconfigure("cam1", device_ref="1")
        assert registry.get("cam1").status == OFFLINE
        assert (await registry.start("cam1")).status == ONLINE

    def test_reconfigure_rejects_unknown_fields(self):
        registry, _ = make_registry()
        with pytest.raises(ValueError):
            registry.reconfigure("cam1", risk_score=99)

    @pytest.mark.asyncio
    async def test_reconfigure_with_null_name_leaves_camera_untouched(self):
        registry, changes = make_registry()
        await registry.start("cam1")
        changes.clear()

        with pytest.raises(ValueError):
            registry.reconfigure("cam1", name=None)

        cam = registry.get("cam1")
        assert cam.name == "Camera Unit 1"
        assert cam.status == ONLINE
        assert changes == []

    def test_reconfigure_can_clear_stream_url(self):
        registry, _ = make_registry()
        registry.reconfigure("cam1", stream_url="http://10.0.0.7/snapshot.jpg")
        assert registry.reconfigure("cam1", stream_url=None).stream_url is None


class TestStaleAcquisition:
    @pytest.mark.asyncio
    async def test_stop_during_connecting_releases_late_handle(self):
        gate = asyncio.Event()
        sources = FakeSources(gate=gate)
        registry, _ = make_registry(sources)

        task = asyncio.create_task(registry.start("cam1"))
        await asyncio.sleep(0)
        assert registry.get("cam1").status == CONNECTING

        registry.stop("cam1")
        gate.set()
        cam = await task

        assert cam.status == OFFLINE
        assert cam.active is False
        assert cam.stream is None
        assert sources.handles[0].released

    @pytest.mark.asyncio
    async def test_removed_during_connecting_releases_late_handle(self):
        gate = asyncio.Event()
        sources = FakeSources(gate=gate)
        registry, _ = make_registry(sources)

        task = asyncio.create_task(registry.start("cam1"))
        await asyncio.sleep(0)
        registry.remove("cam1")
        gate.set()
        await task

        assert "cam1" not in registry
        assert sources.handles[0].released

    @pytest.mark.asyncio
    async def test_restart_after_stop_ignores_first_acquisition(self):
        gate = asyncio.Event()
        sources = FakeSources(gate=gate)
        registry, _ = make_registry(sources)

        first = asyncio.create_task(registry.start("cam1"))
        await asyncio.sleep(0)
        registry.stop("cam1")
        second = asyncio.create_task(registry.start("cam1"))
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)

        cam = registry.get("cam1")
        assert cam.status == ONLINE
        assert sum(1 for h in sources.handles if not h.released) == 1
        assert cam.stream is not None and not cam.stream.released

    def test_release_is_idempotent(self):
        handle = FakeHandle()
        handle.release()
        handle.release()
        assert handle.close_count == 1


class TestNetworkCameras:
    @pytest.mark.asyncio
    async def test_network_camera_goes_straight_online(self):
        sources = FakeSources()
        registry, changes = make_registry(sources, cameras=0)
        registry.add(CameraRecord(id="ip-1", name="Gate", location="Yard",
                                  connection_type=NETWORK, stream_url="http://10.0.0.5/snap.jpg"))
        changes.clear()
        cam = await registry.start("ip-1")

        assert cam.status == ONLINE
        assert sources.acquire_calls == 0
        assert CONNECTING not in [c.status for c in changes]

    @pytest.mark.asyncio
    async def test_network_camera_without_url_goes_no_hardware(self):
        registry, _ = make_registry(cameras=0)
        registry.add(CameraRecord(id="ip-2", name="Gate", location="Yard", connection_type=NETWORK))
        assert (await registry.start("ip-2")).status == NO_HARDWARE

    @pytest.mark.asyncio
    async def test_stream_ended_marks_offline(self):
        registry, _ = make_registry()
        await registry.start("cam1")
        registry.mark_stream_ended("cam1")

        cam = registry.get("cam1")
        assert cam.status == OFFLINE
        assert cam.active is False
        assert registry.slots_in_use() == 0
