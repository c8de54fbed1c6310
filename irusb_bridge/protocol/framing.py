# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Command frame encoding and reply payload cleanup for the IR-USB bridge protocol.

A command "GETPLAY" is sent as the frame "QGETPLAY\r". The bridge replies with
the same frame followed by the response segments, each terminated by "\r",
usually ending with an "OK" acknowledgement:

    QGETPLAY\r1\rOK\r
"""

from __future__ import annotations

from ..internal_types import *
from ..exceptions import IrUsbError
from ..constants import COMMAND_SENTINEL, FRAME_TERMINATOR, ACK_SEGMENT

def encode_command(command: str) -> str:
    """Returns the wire frame for a command.

    Raises IrUsbError if the command cannot be sent as ASCII or would break framing.
    """
    if FRAME_TERMINATOR in command:
        raise IrUsbError(f"Command may not contain a frame terminator: {command!r}")
    if not command.isascii():
        raise IrUsbError(f"Command is not ASCII: {command!r}")
    return f"{COMMAND_SENTINEL}{command}{FRAME_TERMINATOR}"

def reply_segments(payload: str) -> List[str]:
    """Splits reply payload text into segments, dropping empty and acknowledgement segments."""
    return [
        segment for segment in payload.split(FRAME_TERMINATOR)
        if len(segment) > 0 and segment != ACK_SEGMENT
      ]

def clean_reply(chunk: str, frame: str) -> str:
    """Extracts the reply value from received data that begins with the echoed frame."""
    assert chunk.startswith(frame)
    payload = chunk[len(frame):].strip()
    return FRAME_TERMINATOR.join(reply_segments(payload))
