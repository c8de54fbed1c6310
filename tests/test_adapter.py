from __future__ import annotations

import asyncio

import pytest

from irusb_bridge.adapter import IrUsbAdapter
from irusb_bridge.client import CachedPropertySink, IrUsbClientConfig, SessionState
from irusb_bridge.emulator import IrUsbEmulator
from irusb_bridge.exceptions import UnknownDeviceError


def _config() -> IrUsbClientConfig:
    return IrUsbClientConfig(
        command_timeout_secs=2.0,
        connect_timeout_secs=2.0,
        poll_interval_secs=60.0,
    )


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


def test_first_announcement_creates_and_connects_session() -> None:
    async def _run() -> None:
        async with IrUsbEmulator(device_id="bridge-1") as emulator:
            sinks: dict[str, CachedPropertySink] = {}

            def sink_factory(device_id: str) -> CachedPropertySink:
                sinks[device_id] = CachedPropertySink(device_id)
                return sinks[device_id]

            adapter = IrUsbAdapter(sink_factory, config=_config())
            try:
                session = adapter.on_announcement(emulator.announcement())
                assert adapter.devices == [session]
                assert session.device_id == "bridge-1"

                await _wait_until(lambda: session.state == SessionState.CONNECTED)
                await _wait_until(lambda: "power" in sinks["bridge-1"].properties)
                assert sinks["bridge-1"].connected
            finally:
                await adapter.aclose()
            assert adapter.devices == []
            assert session.state == SessionState.DISCONNECTED

    asyncio.run(_run())


def test_repeat_announcement_reconnects_instead_of_duplicating() -> None:
    async def _run() -> None:
        async with IrUsbEmulator(device_id="bridge-1") as emulator:
            adapter = IrUsbAdapter(config=_config())
            try:
                session = adapter.on_announcement(emulator.announcement())
                await _wait_until(lambda: session.state == SessionState.CONNECTED)
                connections = emulator.next_session_id

                # connected: a repeat announcement changes nothing
                assert adapter.on_announcement(emulator.announcement()) is session
                await asyncio.sleep(0.05)
                assert len(adapter.devices) == 1
                assert emulator.next_session_id == connections

                # disconnected: a repeat announcement reconnects the same session
                emulator.drop_clients()
                await _wait_until(lambda: session.state == SessionState.DISCONNECTED)
                assert adapter.on_announcement(emulator.announcement()) is session
                await _wait_until(lambda: session.state == SessionState.CONNECTED)
                assert len(adapter.devices) == 1
                assert emulator.next_session_id == connections + 1
            finally:
                await adapter.aclose()

    asyncio.run(_run())


def test_remove_device_destroys_and_unregisters() -> None:
    async def _run() -> None:
        async with IrUsbEmulator(device_id="bridge-1") as emulator:
            adapter = IrUsbAdapter(config=_config())
            try:
                session = adapter.on_announcement(emulator.announcement())
                await _wait_until(lambda: session.state == SessionState.CONNECTED)

                await adapter.remove_device("bridge-1")

                assert adapter.devices == []
                assert not session.is_polling
                assert session.state == SessionState.DISCONNECTED
                with pytest.raises(UnknownDeviceError):
                    adapter.get_device("bridge-1")
                with pytest.raises(UnknownDeviceError):
                    await adapter.remove_device("bridge-1")
            finally:
                await adapter.aclose()

    asyncio.run(_run())


def test_announcement_for_unreachable_bridge_keeps_session_registered() -> None:
    async def _run() -> None:
        async with IrUsbEmulator(device_id="bridge-1") as emulator:
            announcement = emulator.announcement()
        adapter = IrUsbAdapter(config=_config())
        try:
            session = adapter.on_announcement(announcement)
            await _wait_until(lambda: session.state == SessionState.DISCONNECTED)
            assert adapter.get_device("bridge-1") is session
        finally:
            await adapter.aclose()

    asyncio.run(_run())


def test_device_removed_before_its_connect_runs_never_connects() -> None:
    async def _run() -> None:
        async with IrUsbEmulator(device_id="bridge-1") as emulator:
            sink = CachedPropertySink("bridge-1")
            adapter = IrUsbAdapter(lambda device_id: sink, config=_config())
            try:
                session = adapter.on_announcement(emulator.announcement())
                await adapter.remove_device("bridge-1")
                await asyncio.sleep(0.2)

                assert not session.is_connected
                assert not session.is_polling
                assert not sink.connected
                assert emulator.sessions == {}
                assert adapter.devices == []
            finally:
                await adapter.aclose()

    asyncio.run(_run())
