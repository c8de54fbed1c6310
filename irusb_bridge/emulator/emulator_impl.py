# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IR-USB bridge emulator.

Provides a simple emulation of an IR-USB bridge and the media device behind
it, on TCP/IP.
"""

from __future__ import annotations

import asyncio

from ..internal_types import *
from ..pkg_logging import logger
from ..constants import FRAME_TERMINATOR, ACK_SEGMENT, COMMAND_SENTINEL
from ..protocol import Announcement, DEFAULT_KEY_TABLE, PressDuration, translate, RELEASE_CODE

from .session import IrUsbEmulatorSession

def _hidcode(key_name: str) -> str:
    return translate(DEFAULT_KEY_TABLE.lookup(key_name), PressDuration.SHORT)

PLAY_CODE = _hidcode("PLAY")
PAUSE_CODE = _hidcode("PAUSE")
SLEEP_CODE = _hidcode("SLEEP")

class IrUsbEmulator:
    device_id: str
    bind_addr: str
    port: int
    sessions: Dict[int, IrUsbEmulatorSession]
    next_session_id: int = 0
    server: Optional[asyncio.Server] = None

    awake: bool
    playing: bool
    foreground_app: str

    received_commands: List[str]
    """Every command received, in order, without framing."""

    silent_commands: Set[str]
    """Commands the emulator swallows without replying."""

    def __init__(
            self,
            device_id: str = "irusb-emulator",
            bind_addr: Optional[str] = None,
            port: int = 0,
          ):
        self.device_id = device_id
        self.bind_addr = '127.0.0.1' if bind_addr is None else bind_addr
        self.port = port
        self.sessions = {}
        self.awake = False
        self.playing = False
        self.foreground_app = ''
        self.received_commands = []
        self.silent_commands = set()

    def alloc_session_id(self, session: IrUsbEmulatorSession) -> int:
        result = self.next_session_id
        self.next_session_id += 1
        self.sessions[result] = session
        return result

    def free_session_id(self, session_id: int) -> None:
        self.sessions.pop(session_id, None)

    def handle_command(self, command: str) -> Optional[List[str]]:
        """Handle a single command, and return the reply segments.

        Returns None if no reply should be sent.
        """
        self.received_commands.append(command)
        if command in self.silent_commands:
            return None
        if command == 'WAKE':
            self.awake = True
            return []
        if command == 'GETPLAY':
            return ['1' if self.playing else '0']
        if command == 'GETFG':
            return [self.foreground_app if self.awake else '']
        if command.startswith('LAUNCH '):
            self.awake = True
            self.foreground_app = command[len('LAUNCH '):]
            self.playing = False
            return []
        if command.startswith('HIDCODE'):
            code = command[len('HIDCODE'):]
            if code == PLAY_CODE:
                self.playing = True
            elif code == PAUSE_CODE:
                self.playing = False
            elif code == SLEEP_CODE:
                self.awake = False
                self.playing = False
            elif code != RELEASE_CODE and len(code) != 7:
                return ['ERR']
            return []
        return ['ERR']

    def on_command_received(self, session: IrUsbEmulatorSession, command: str) -> None:
        """Called when a command frame is received from a session."""
        logger.debug(f"{session}: Emulator received command {command!r}")
        segments = self.handle_command(command)
        if segments is None:
            return
        reply = f"{COMMAND_SENTINEL}{command}{FRAME_TERMINATOR}"
        for segment in segments + [ACK_SEGMENT]:
            reply += segment + FRAME_TERMINATOR
        session.write(reply)

    def announcement(self) -> Announcement:
        """Returns the announcement this emulator would multicast."""
        return Announcement(self.device_id, self.bind_addr, self.port)

    def announcement_bytes(self) -> bytes:
        """Returns the announcement datagram this emulator would multicast."""
        return self.announcement().to_bytes()

    def drop_clients(self) -> None:
        """Closes all client connections, leaving the server listening."""
        for session in list(self.sessions.values()):
            session.close()

    async def start(self) -> None:
        loop = asyncio.get_running_loop()
        self.server = await loop.create_server(
            lambda: IrUsbEmulatorSession(self),
            host=self.bind_addr,
            port=self.port)
        self.port = self.server.sockets[0].getsockname()[1]
        logger.debug(f"Emulator: Listening on {self.bind_addr}:{self.port}")

    async def close(self) -> None:
        """Stops the emulator and disconnects all clients."""
        server = self.server
        self.server = None
        if server is not None:
            server.close()
        self.drop_clients()
        if server is not None:
            await server.wait_closed()

    async def __aenter__(self) -> IrUsbEmulator:
        await self.start()
        return self

    async def __aexit__(self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> None:
        await self.close()
