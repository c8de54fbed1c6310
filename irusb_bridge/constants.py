# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by irusb_bridge"""

DISCOVERY_MULTICAST_GROUP = "239.255.255.250"
"""The multicast group on which IR-USB bridges announce themselves."""

DISCOVERY_PORT = 1904
"""The UDP port on which IR-USB bridges announce themselves."""

DEFAULT_BIND_ADDR = "0.0.0.0"
"""The local address the discovery socket is bound to."""

CONNECT_TIMEOUT = 15.0
"""The timeout for connecting to a bridge over TCP/IP, in seconds."""

COMMAND_TIMEOUT = 5.0
"""The default time to wait for the reply to a single command, in seconds."""

POLL_INTERVAL = 5.0
"""The interval between state polls of a connected bridge, in seconds."""

READ_CHUNK_SIZE = 4096
"""Maximum number of bytes read from the command stream at a time."""

# Command frames:
#   Client: "Q<command>\r"
#   Bridge: "Q<command>\r<segment>\r...OK\r"
# The reply echoes the request frame, which is the only thing that ties a reply
# to its request.

COMMAND_SENTINEL = "Q"
"""Prefixed to every command sent to the bridge."""

FRAME_TERMINATOR = "\r"
"""Terminates command frames and separates reply segments."""

ACK_SEGMENT = "OK"
"""Acknowledgement segment appended by the bridge; stripped from replies."""

ANNOUNCEMENT_HEADER = "NOTIFY "
"""First line of a discovery announcement. Note the trailing space."""
