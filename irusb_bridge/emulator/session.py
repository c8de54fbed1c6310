# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import asyncio

from ..internal_types import *
from ..pkg_logging import logger
from ..constants import FRAME_TERMINATOR, COMMAND_SENTINEL

if TYPE_CHECKING:
    from .emulator_impl import IrUsbEmulator

class IrUsbEmulatorSession(asyncio.Protocol):
    """One client connection to the emulator. Splits the byte stream into command frames."""

    emulator: IrUsbEmulator
    session_id: int
    transport: Optional[asyncio.Transport] = None
    buffer: str

    def __init__(self, emulator: IrUsbEmulator):
        self.emulator = emulator
        self.session_id = emulator.alloc_session_id(self)
        self.buffer = ''

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        assert isinstance(transport, asyncio.Transport)
        self.transport = transport
        logger.debug(f"{self}: Client connected")

    def data_received(self, data: bytes) -> None:
        self.buffer += data.decode('ascii', errors='replace')
        while FRAME_TERMINATOR in self.buffer:
            frame, self.buffer = self.buffer.split(FRAME_TERMINATOR, 1)
            if not frame.startswith(COMMAND_SENTINEL):
                logger.debug(f"{self}: Ignoring garbage {frame!r}")
                continue
            self.emulator.on_command_received(self, frame[len(COMMAND_SENTINEL):])

    def connection_lost(self, exc: Optional[Exception]) -> None:
        logger.debug(f"{self}: Client disconnected")
        self.transport = None
        self.emulator.free_session_id(self.session_id)

    def write(self, text: str) -> None:
        if self.transport is not None:
            self.transport.write(text.encode('ascii'))

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()

    def __str__(self) -> str:
        return f"IrUsbEmulatorSession({self.session_id})"

    def __repr__(self) -> str:
        return str(self)
