# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IR-USB bridge adapter.

Owns the discovery listener and the registry of device sessions. The first
announcement from a bridge creates its session and connects it; every later
announcement asks the existing session to reconnect, which is how a session
recovers after its connection drops.
"""

from __future__ import annotations

import asyncio

from .internal_types import *
from .exceptions import UnknownDeviceError
from .pkg_logging import logger
from .protocol import Announcement, KeyCodeTable, DEFAULT_KEY_TABLE
from .client import (
    IrUsbClientConfig,
    DevicePropertySink,
    CachedPropertySink,
    DeviceSession,
  )
from .discovery import DiscoveryListener

SinkFactory = Callable[[str], DevicePropertySink]
"""Creates the property sink for a newly discovered device, given its id."""

class IrUsbAdapter:
    """Registry of IR-USB bridge sessions, fed by discovery.

    All registry changes happen on the event loop thread.
    """

    config: IrUsbClientConfig
    sink_factory: SinkFactory
    key_table: KeyCodeTable
    sessions: Dict[str, DeviceSession]
    listener: Optional[DiscoveryListener] = None
    _tasks: Dict[asyncio.Task[Any], str]
    """Connect and reconnect tasks in flight, with the id of the device each is for."""

    def __init__(
            self,
            sink_factory: Optional[SinkFactory]=None,
            *,
            config: Optional[IrUsbClientConfig]=None,
            key_table: KeyCodeTable=DEFAULT_KEY_TABLE,
          ) -> None:
        self.config = IrUsbClientConfig(base_config=config)
        self.sink_factory = CachedPropertySink if sink_factory is None else sink_factory
        self.key_table = key_table
        self.sessions = {}
        self._tasks = {}

    @property
    def devices(self) -> List[DeviceSession]:
        return list(self.sessions.values())

    def get_device(self, device_id: str) -> DeviceSession:
        session = self.sessions.get(device_id)
        if session is None:
            raise UnknownDeviceError(f"Unknown device: {device_id!r}")
        return session

    async def start(self) -> None:
        """Starts listening for bridge announcements."""
        if self.listener is None:
            listener = DiscoveryListener(self.on_announcement, config=self.config)
            await listener.start()
            self.listener = listener

    def add_device(self, device_id: str, host: str, port: int) -> DeviceSession:
        """Creates and registers a session for a new device without connecting it."""
        assert device_id not in self.sessions
        session = DeviceSession(
            device_id,
            host,
            port,
            self.sink_factory(device_id),
            config=self.config,
            key_table=self.key_table,
          )
        self.sessions[device_id] = session
        return session

    def on_announcement(self, announcement: Announcement) -> DeviceSession:
        """Handles a bridge announcement. Returns the session for the announced device."""
        session = self.sessions.get(announcement.device_id)
        if session is None:
            logger.info(f"Discovered new bridge: {announcement}")
            session = self.add_device(announcement.device_id, announcement.host, announcement.port)
            self._spawn(session.device_id, session.connect())
        else:
            self._spawn(session.device_id, session.reconnect(announcement.host, announcement.port))
        return session

    async def remove_device(self, device_id: str) -> None:
        """Destroys the session for a device and unregisters it."""
        session = self.get_device(device_id)
        await self._cancel_tasks(device_id)
        await session.destroy()
        if self.sessions.get(device_id) is session:
            del self.sessions[device_id]
        logger.info(f"Removed {session}")

    def _spawn(self, device_id: str, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks[task] = device_id
        task.add_done_callback(self._on_task_done)

    async def _cancel_tasks(self, device_id: Optional[str]=None) -> None:
        """Cancels and waits for the tasks spawned for one device, or for all devices."""
        tasks = [task for task, task_device_id in self._tasks.items()
                 if device_id is None or task_device_id == device_id]
        for task in tasks:
            task.cancel()
        if len(tasks) > 0:
            await asyncio.wait(tasks)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.pop(task, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Unexpected error connecting to bridge", exc_info=task.exception())

    async def aclose(self) -> None:
        """Stops discovery and destroys all sessions."""
        if self.listener is not None:
            self.listener.close()
            self.listener = None
        await self._cancel_tasks()
        sessions = list(self.sessions.values())
        self.sessions.clear()
        for session in sessions:
            await session.destroy()

    async def __aenter__(self) -> IrUsbAdapter:
        await self.start()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType],
          ) -> None:
        await self.aclose()

    def __str__(self) -> str:
        return f"IrUsbAdapter({len(self.sessions)} devices)"

    def __repr__(self) -> str:
        return str(self)
