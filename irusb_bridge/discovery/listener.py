# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IR-USB bridge discovery listener.

Bridges periodically multicast an announcement with their id and command
endpoint. The listener only receives; it never sends a search request.
"""

from __future__ import annotations

import asyncio
import socket
import struct

from ..internal_types import *
from ..exceptions import IrUsbError, MalformedAnnouncementError
from ..pkg_logging import logger
from ..protocol import Announcement, parse_announcement
from ..client import IrUsbClientConfig

AnnouncementCallback = Callable[[Announcement], None]

class DiscoveryListener(asyncio.DatagramProtocol):
    """Receives bridge announcements on the discovery multicast group."""

    config: IrUsbClientConfig
    on_announcement: AnnouncementCallback
    transport: Optional[asyncio.DatagramTransport] = None

    def __init__(
            self,
            on_announcement: AnnouncementCallback,
            config: Optional[IrUsbClientConfig]=None,
          ) -> None:
        super().__init__()
        self.on_announcement = on_announcement
        self.config = IrUsbClientConfig(base_config=config)

    def create_socket(self) -> socket.socket:
        """Creates a nonblocking UDP socket bound to the discovery port and joined to the multicast group."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, 'SO_REUSEPORT'):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError:
                    logger.debug("SO_REUSEPORT not supported", exc_info=True)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((self.config.bind_addr, self.config.discovery_port))
            mreq = struct.pack("=4sl", socket.inet_aton(self.config.multicast_group), socket.INADDR_ANY)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
            sock.setblocking(False)
        except BaseException:
            sock.close()
            raise
        return sock

    async def start(self) -> None:
        """Starts listening. Raises IrUsbError if the socket cannot be set up."""
        if self.transport is not None:
            return
        try:
            sock = self.create_socket()
        except OSError as e:
            raise IrUsbError(
                f"Unable to listen for announcements on {self.config.multicast_group}:{self.config.discovery_port}: {e}"
              ) from e
        loop = asyncio.get_running_loop()
        await loop.create_datagram_endpoint(lambda: self, sock=sock)
        logger.info(f"Listening for IR-USB bridges on {self.config.multicast_group}:{self.config.discovery_port}")

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        assert isinstance(transport, asyncio.DatagramTransport)
        self.transport = transport

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        try:
            announcement = parse_announcement(data)
        except MalformedAnnouncementError as e:
            logger.debug(f"Ignoring datagram from {addr[0]}: {e}")
            return
        logger.debug(f"Received {announcement} from {addr[0]}")
        self.on_announcement(announcement)

    def error_received(self, exc: Exception) -> None:
        logger.debug(f"Discovery socket error: {exc}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self.transport = None

    def close(self) -> None:
        """Stops listening and releases the socket. Idempotent."""
        transport = self.transport
        self.transport = None
        if transport is not None:
            transport.close()
            logger.debug("Discovery listener closed")

    def __str__(self) -> str:
        return f"DiscoveryListener({self.config.multicast_group}:{self.config.discovery_port})"

    def __repr__(self) -> str:
        return str(self)
