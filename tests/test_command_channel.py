from __future__ import annotations

import asyncio

import pytest

from irusb_bridge.client import CommandChannel, ConnectionState, IrUsbClientConfig
from irusb_bridge.emulator import IrUsbEmulator
from irusb_bridge.exceptions import (
    CommandTimeoutError,
    DeviceConnectionError,
    NotConnectedError,
    UnexpectedPacketError,
)


class _FakeStreamWriter:
    def __init__(self) -> None:
        self.buffer = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


def _config(**kwargs) -> IrUsbClientConfig:
    kwargs.setdefault("command_timeout_secs", 2.0)
    kwargs.setdefault("connect_timeout_secs", 2.0)
    return IrUsbClientConfig(**kwargs)


def _connected_channel(**kwargs) -> tuple[CommandChannel, _FakeStreamWriter]:
    channel = CommandChannel("192.0.2.1", 8080, config=_config(), **kwargs)
    writer = _FakeStreamWriter()
    channel.writer = writer  # type: ignore[assignment]
    channel.state = ConnectionState.CONNECTED
    return channel, writer


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


def test_send_command_writes_frame_and_resolves_reply() -> None:
    async def _run() -> None:
        channel, writer = _connected_channel()
        task = asyncio.create_task(channel.send_command("GETPLAY"))
        await _settle()

        assert bytes(writer.buffer) == b"QGETPLAY\r"
        assert len(channel.pending) == 1
        assert channel.on_data("QGETPLAY\r1\rOK\r")

        assert await task == "1"
        assert len(channel.pending) == 0

    asyncio.run(_run())


def test_concurrent_commands_resolve_in_send_order() -> None:
    async def _run() -> None:
        channel, writer = _connected_channel()
        tasks = [
            asyncio.create_task(channel.send_command("GETPLAY")),
            asyncio.create_task(channel.send_command("GETFG")),
            asyncio.create_task(channel.send_command("HIDCODE2000176")),
        ]
        await _settle()

        assert bytes(writer.buffer) == b"QGETPLAY\rQGETFG\rQHIDCODE2000176\r"
        assert [request.expected_prefix for request in channel.pending] == [
            "QGETPLAY\r",
            "QGETFG\r",
            "QHIDCODE2000176\r",
        ]

        channel.on_data("QGETPLAY\r0\rOK\r")
        channel.on_data("QGETFG\rcom.example.app\rOK\r")
        channel.on_data("QHIDCODE2000176\rOK\r")

        assert await asyncio.gather(*tasks) == ["0", "com.example.app", ""]

    asyncio.run(_run())


def test_repeated_command_matches_oldest_request_first() -> None:
    async def _run() -> None:
        channel, _ = _connected_channel()
        first = asyncio.create_task(channel.send_command("GETPLAY"))
        second = asyncio.create_task(channel.send_command("GETPLAY"))
        await _settle()

        channel.on_data("QGETPLAY\r1\rOK\r")
        await _settle()
        assert first.done() and not second.done()
        channel.on_data("QGETPLAY\r0\rOK\r")

        assert await first == "1"
        assert await second == "0"

    asyncio.run(_run())


def test_unexpected_packet_is_reported_and_leaves_queue_alone() -> None:
    async def _run() -> None:
        reported: list[UnexpectedPacketError] = []
        channel, _ = _connected_channel(on_unexpected_packet=reported.append)
        task = asyncio.create_task(channel.send_command("GETFG"))
        await _settle()

        assert not channel.on_data("QGETPLAY\r1\rOK\r")
        assert not channel.on_data("IRRECV 1234\r")

        assert len(reported) == 2
        assert channel.is_connected
        assert [request.expected_prefix for request in channel.pending] == ["QGETFG\r"]

        channel.on_data("QGETFG\r\rOK\r")
        assert await task == ""

    asyncio.run(_run())


def test_send_while_disconnected_fails_fast() -> None:
    async def _run() -> None:
        channel = CommandChannel("192.0.2.1", 8080, config=_config())
        with pytest.raises(NotConnectedError):
            await channel.send_command("GETPLAY")
        assert len(channel.pending) == 0

    asyncio.run(_run())


def test_close_rejects_pending_requests() -> None:
    async def _run() -> None:
        closed: list[BaseException | None] = []
        channel, writer = _connected_channel(on_close=closed.append)
        task = asyncio.create_task(channel.send_command("GETPLAY"))
        await _settle()

        await channel.close()

        with pytest.raises(NotConnectedError):
            await task
        assert channel.state == ConnectionState.DISCONNECTED
        assert len(channel.pending) == 0
        assert writer.closed
        assert closed == [None]

        # closing again does not fire on_close twice
        await channel.close()
        assert closed == [None]

    asyncio.run(_run())


def test_command_times_out_and_is_removed_from_queue() -> None:
    async def _run() -> None:
        channel = CommandChannel("192.0.2.1", 8080, config=_config(command_timeout_secs=0.05))
        channel.writer = _FakeStreamWriter()  # type: ignore[assignment]
        channel.state = ConnectionState.CONNECTED

        with pytest.raises(CommandTimeoutError):
            await channel.send_command("GETPLAY")
        await _settle()

        assert len(channel.pending) == 0
        # a late reply is now unexpected
        assert not channel.on_data("QGETPLAY\r1\rOK\r")

    asyncio.run(_run())


def test_open_failure_leaves_channel_disconnected() -> None:
    async def _run() -> None:
        emulator = IrUsbEmulator()
        await emulator.start()
        port = emulator.port
        await emulator.close()

        opened: list[bool] = []
        channel = CommandChannel("127.0.0.1", port, config=_config(), on_open=lambda: opened.append(True))
        with pytest.raises(DeviceConnectionError):
            await channel.open()
        assert channel.state == ConnectionState.DISCONNECTED
        assert opened == []

    asyncio.run(_run())


def test_round_trip_against_emulator() -> None:
    async def _run() -> None:
        async with IrUsbEmulator() as emulator:
            emulator.awake = True
            emulator.foreground_app = "com.example.app"
            opened: list[bool] = []
            channel = CommandChannel(
                "127.0.0.1",
                emulator.port,
                config=_config(),
                on_open=lambda: opened.append(True),
            )
            await channel.open()
            try:
                assert opened == [True]
                assert await channel.send_command("GETPLAY") == "0"
                assert await channel.send_command("GETFG") == "com.example.app"
                assert await channel.send_command("WAKE") == ""
                assert emulator.received_commands == ["GETPLAY", "GETFG", "WAKE"]
            finally:
                await channel.close()

    asyncio.run(_run())


def test_remote_close_disconnects_and_rejects_in_flight_command() -> None:
    async def _run() -> None:
        async with IrUsbEmulator() as emulator:
            emulator.silent_commands.add("GETPLAY")
            closed: list[BaseException | None] = []
            channel = CommandChannel("127.0.0.1", emulator.port, config=_config(), on_close=closed.append)
            await channel.open()

            task = asyncio.create_task(channel.send_command("GETPLAY"))
            await _wait_until(lambda: emulator.received_commands == ["GETPLAY"])
            emulator.drop_clients()

            with pytest.raises(NotConnectedError):
                await task
            await _wait_until(lambda: len(closed) == 1)
            assert channel.state == ConnectionState.DISCONNECTED

            # the channel can be opened again
            emulator.silent_commands.clear()
            await channel.open()
            assert await channel.send_command("GETPLAY") == "0"
            await channel.close()

    asyncio.run(_run())


def test_replies_arriving_in_one_read_are_dispatched_separately() -> None:
    async def _run() -> None:
        channel, _ = _connected_channel()
        play = asyncio.create_task(channel.send_command("GETPLAY"))
        key = asyncio.create_task(channel.send_command("HIDCODE2000176"))
        await _settle()

        assert channel.on_data("QGETPLAY\r1\rOK\rQHIDCODE2000176\rOK\r")

        assert await asyncio.gather(play, key) == ["1", ""]
        assert len(channel.pending) == 0

    asyncio.run(_run())


def test_reply_split_across_reads_is_reassembled() -> None:
    async def _run() -> None:
        channel, _ = _connected_channel()
        app = asyncio.create_task(channel.send_command("GETFG"))
        play = asyncio.create_task(channel.send_command("GETPLAY"))
        await _settle()

        # split inside the payload, then inside the next echoed frame
        assert channel.on_data("QGETFG\rcom.ex")
        assert channel.on_data("ample.app\rOK\rQGET")
        await _settle()
        assert app.done() and not play.done()
        assert channel.on_data("PLAY\r0\rOK\r")

        assert await app == "com.example.app"
        assert await play == "0"

    asyncio.run(_run())


def test_reply_without_acknowledgement_ends_at_next_echoed_frame() -> None:
    async def _run() -> None:
        channel, _ = _connected_channel()
        play = asyncio.create_task(channel.send_command("GETPLAY"))
        app = asyncio.create_task(channel.send_command("GETFG"))
        await _settle()

        assert channel.on_data("QGETPLAY\r1\rQGETFG\rcom.example.app\rOK\r")

        assert await asyncio.gather(play, app) == ["1", "com.example.app"]

    asyncio.run(_run())


def test_unsolicited_data_ahead_of_a_reply_is_reported() -> None:
    async def _run() -> None:
        reported: list[UnexpectedPacketError] = []
        channel, _ = _connected_channel(on_unexpected_packet=reported.append)
        task = asyncio.create_task(channel.send_command("GETFG"))
        await _settle()

        assert not channel.on_data("IRRECV 1234\rQGETFG\rcom.example.app\rOK\r")

        assert len(reported) == 1
        assert "IRRECV 1234" in str(reported[0])
        assert await task == "com.example.app"

    asyncio.run(_run())


def test_coalesced_replies_over_tcp() -> None:
    async def _run() -> None:
        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            # answer only once both commands are in, with a single write
            await reader.readexactly(len(b"QGETPLAY\rQHIDCODE2000176\r"))
            writer.write(b"QGETPLAY\r1\rOK\rQHIDCODE2000176\rOK\r")
            await writer.drain()
            await reader.read()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        channel = CommandChannel("127.0.0.1", port, config=_config())
        await channel.open()
        try:
            results = await asyncio.gather(
                channel.send_command("GETPLAY"),
                channel.send_command("HIDCODE2000176"),
            )
            assert results == ["1", ""]
        finally:
            await channel.close()
            server.close()
            await server.wait_closed()

    asyncio.run(_run())
