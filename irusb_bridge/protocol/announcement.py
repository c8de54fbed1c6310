# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

from ..internal_types import *
from ..exceptions import MalformedAnnouncementError
from ..constants import ANNOUNCEMENT_HEADER

class Announcement:
    """A bridge announcement received on the discovery multicast group

    The datagram is ASCII text of the form:

        NOTIFY \\n<device-id>\\n<ip-address>\\n<port>

    Lines after the port are ignored.
    """
    device_id: str
    host: str
    port: int

    def __init__(self, device_id: str, host: str, port: int):
        self.device_id = device_id
        self.host = host
        self.port = port

    def to_bytes(self) -> bytes:
        """Returns the datagram that announces this bridge"""
        return f"{ANNOUNCEMENT_HEADER}\n{self.device_id}\n{self.host}\n{self.port}".encode('ascii')

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Announcement):
            return NotImplemented
        return (self.device_id, self.host, self.port) == (other.device_id, other.host, other.port)

    def __hash__(self) -> int:
        return hash((self.device_id, self.host, self.port))

    def __str__(self) -> str:
        return f"Announcement({self.device_id} at {self.host}:{self.port})"

    def __repr__(self) -> str:
        return str(self)

def parse_announcement(data: bytes) -> Announcement:
    """Parses a discovery datagram.

    Raises MalformedAnnouncementError if the datagram is not a bridge announcement.
    """
    try:
        text = data.decode('ascii')
    except UnicodeDecodeError as e:
        raise MalformedAnnouncementError("Announcement is not ASCII") from e
    lines = text.split('\n')
    if lines[0] != ANNOUNCEMENT_HEADER:
        raise MalformedAnnouncementError(f"Not an announcement: {text[:32]!r}")
    if len(lines) < 4:
        raise MalformedAnnouncementError(f"Truncated announcement: {text!r}")
    device_id, host, port_str = (line.strip() for line in lines[1:4])
    if device_id == '' or host == '':
        raise MalformedAnnouncementError(f"Announcement is missing device id or address: {text!r}")
    try:
        port = int(port_str)
    except ValueError as e:
        raise MalformedAnnouncementError(f"Invalid port in announcement: {port_str!r}") from e
    if port < 1 or port > 65535:
        raise MalformedAnnouncementError(f"Port out of range in announcement: {port}")
    return Announcement(device_id, host, port)
