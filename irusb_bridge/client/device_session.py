# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IR-USB bridge device session.

One DeviceSession exists for each discovered bridge. It owns the bridge's
CommandChannel, turns remote-control intents into commands, and polls the
bridge for its play state and foreground app while connected.

A session never reconnects on its own. After the connection drops it stays
disconnected until reconnect() is called, which the adapter does whenever the
bridge announces itself again.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from ..internal_types import *
from ..exceptions import IrUsbError, UnknownKeyError, DeviceConnectionError
from ..pkg_logging import logger
from ..protocol import (
    KeyCodeTable,
    PressDuration,
    translate,
    DEFAULT_KEY_TABLE,
    SHORT_PRESS_KEYS,
    LONG_PRESS_KEYS,
    RELEASE_CODE,
  )

from .client_config import IrUsbClientConfig
from .command_channel import CommandChannel, ConnectionState
from .host_interface import DevicePropertySink

class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"

WRITABLE_PROPERTIES = ("power", "playing")
"""Device properties the host may set."""

ACTIONS = ("launch", "remoteShort", "remoteLong", "cancelKeys")
"""Actions the host may invoke."""

class DeviceSession:
    """Session with a single IR-USB bridge."""

    device_id: str
    host: str
    port: int
    config: IrUsbClientConfig
    key_table: KeyCodeTable
    sink: DevicePropertySink
    channel: CommandChannel

    power: bool = False
    playing: bool = False
    app: str = ''

    _initialized: bool = False
    _destroyed: bool = False
    _poll_task: Optional[asyncio.Task[None]] = None

    def __init__(
            self,
            device_id: str,
            host: str,
            port: int,
            sink: DevicePropertySink,
            *,
            config: Optional[IrUsbClientConfig]=None,
            key_table: KeyCodeTable=DEFAULT_KEY_TABLE,
          ) -> None:
        self.device_id = device_id
        self.host = host
        self.port = port
        self.sink = sink
        self.config = IrUsbClientConfig(base_config=config)
        self.key_table = key_table
        self.channel = CommandChannel(
            host,
            port,
            config=self.config,
            on_open=self._on_channel_open,
            on_close=self._on_channel_close,
          )

    @property
    def state(self) -> SessionState:
        if not self._initialized:
            return SessionState.UNINITIALIZED
        return {
            ConnectionState.CONNECTING: SessionState.CONNECTING,
            ConnectionState.CONNECTED: SessionState.CONNECTED,
            ConnectionState.DISCONNECTED: SessionState.DISCONNECTED,
          }[self.channel.state]

    @property
    def is_connected(self) -> bool:
        return self.channel.is_connected

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def properties(self) -> Dict[str, Jsonable]:
        return dict(power=self.power, playing=self.playing, app=self.app)

    async def send_raw_command(self, command: str) -> str:
        """Sends a command to the bridge and returns the reply payload."""
        return await self.channel.send_command(command)

    async def send_key(self, name: str, long: bool=False) -> str:
        """Presses a key. Raises UnknownKeyError if the key is not in the key table."""
        descriptor = self.key_table.lookup(name)
        code = translate(descriptor, PressDuration.LONG if long else PressDuration.SHORT)
        return await self.send_raw_command(f"HIDCODE{code}")

    async def launch(self, app_id: str) -> str:
        return await self.send_raw_command(f"LAUNCH {app_id}")

    async def cancel_presses(self) -> str:
        """Releases all keys, whether or not any are held down."""
        return await self.send_raw_command(f"HIDCODE{RELEASE_CODE}")

    async def set_power(self, on: bool) -> str:
        """Wakes the bridge's display device, or puts it to sleep.

        WAKE is accepted by the bridge even while the device is in standby; sleep
        is an ordinary SLEEP key press.
        """
        if on:
            return await self.send_raw_command("WAKE")
        return await self.send_key("SLEEP")

    async def set_playing(self, on: bool) -> str:
        return await self.send_key("PLAY" if on else "PAUSE")

    async def poll_once(self) -> None:
        """Reads the play state and foreground app from the bridge and publishes them.

        The device counts as powered on if it is playing or has a foreground app;
        an empty foreground app means the screensaver or standby.
        """
        play_reply = await self.send_raw_command("GETPLAY")
        app = await self.send_raw_command("GETFG")
        playing = play_reply == "1"
        self._update_property('playing', playing)
        self._update_property('app', app)
        self._update_property('power', playing or app != '')

    def _update_property(self, name: str, value: Union[bool, str]) -> None:
        setattr(self, name, value)
        self.sink.publish(name, value)

    async def set_property(self, name: str, value: Jsonable) -> str:
        """Applies a host write to a device property. Writable properties take bool values only."""
        if name == 'app':
            raise IrUsbError(f"{self}: Property 'app' is read-only")
        if name not in WRITABLE_PROPERTIES:
            raise IrUsbError(f"{self}: Unknown property {name!r}")
        if not isinstance(value, bool):
            raise IrUsbError(f"{self}: Property {name!r} requires a bool, got {value!r}")
        if name == 'power':
            return await self.set_power(value)
        return await self.set_playing(value)

    async def perform_action(self, name: str, action_input: Optional[str]=None) -> str:
        """Invokes a host action and reports the result to the sink."""
        if name == 'launch':
            if action_input is None or action_input == '':
                raise IrUsbError(f"{self}: launch requires an app id")
            result = await self.launch(action_input)
        elif name == 'remoteShort':
            if action_input not in SHORT_PRESS_KEYS:
                raise UnknownKeyError(f"Key not available for a short press: {action_input!r}")
            result = await self.send_key(action_input, long=False)
        elif name == 'remoteLong':
            if action_input not in LONG_PRESS_KEYS:
                raise UnknownKeyError(f"Key not available for a long press: {action_input!r}")
            result = await self.send_key(action_input, long=True)
        elif name == 'cancelKeys':
            result = await self.cancel_presses()
        else:
            raise IrUsbError(f"{self}: Unknown action {name!r}")
        self.sink.report_action(name, result)
        return result

    async def connect(self) -> bool:
        """Makes the first connection to the bridge.

        Returns True if connected. A failure is logged; the session then waits
        for reconnect(). Does nothing after destroy().
        """
        if self._destroyed:
            return False
        if self._initialized:
            return self.is_connected
        self._initialized = True
        return await self._open()

    async def reconnect(self, host: str, port: int) -> bool:
        """Reconnects to the bridge, possibly at a new address.

        Does nothing if the channel is connected or connecting. Returns True if
        connected afterwards.
        """
        if self._destroyed:
            return False
        if self.channel.state != ConnectionState.DISCONNECTED:
            logger.debug(f"{self}: Already {self.channel.state.value}; ignoring reconnect")
            return self.is_connected
        self._initialized = True
        self.host = host
        self.port = port
        self._start_polling()
        return await self._open()

    async def _open(self) -> bool:
        try:
            await self.channel.open(self.host, self.port)
        except DeviceConnectionError as e:
            logger.warning(f"{self}: {e}; waiting for the next announcement")
            self._stop_polling()
            return False
        return True

    async def destroy(self) -> None:
        """Stops polling and forcibly closes the channel. The session cannot be reused."""
        self._destroyed = True
        self._stop_polling()
        await self.channel.close()

    def _on_channel_open(self) -> None:
        self.sink.connected_notify(True)
        self._start_polling()

    def _on_channel_close(self, exc: Optional[BaseException]) -> None:
        self._stop_polling()
        self.sink.connected_notify(False)

    def _start_polling(self) -> None:
        if self._destroyed or self.is_polling:
            return
        self._poll_task = asyncio.create_task(self._poll_loop())
        self._poll_task.add_done_callback(self._on_poll_task_done)

    def _stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_loop(self) -> None:
        while True:
            if self.is_connected:
                try:
                    await self.poll_once()
                except IrUsbError as e:
                    logger.debug(f"{self}: Poll failed: {e}")
            await asyncio.sleep(self.config.poll_interval_secs)

    def _on_poll_task_done(self, task: asyncio.Task[None]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"{self}: Polling stopped by unexpected error", exc_info=task.exception())

    def __str__(self) -> str:
        return f"DeviceSession({self.device_id} at {self.host}:{self.port})"

    def __repr__(self) -> str:
        return str(self)
