# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Package irusb_bridge provides an API for discovering and controlling
IR-USB bridges over their TCP/IP command protocol.
"""

from .version import __version__

from .pkg_logging import logger

from .internal_types import Jsonable, JsonableDict

from .exceptions import (
    IrUsbError,
    UnknownKeyError,
    DeviceConnectionError,
    NotConnectedError,
    CommandTimeoutError,
    UnexpectedPacketError,
    MalformedAnnouncementError,
    UnknownDeviceError,
  )

from .constants import (
    DISCOVERY_MULTICAST_GROUP,
    DISCOVERY_PORT,
    COMMAND_TIMEOUT,
    CONNECT_TIMEOUT,
    POLL_INTERVAL,
  )

from .protocol import (
    KeyPage,
    PressDuration,
    KeyDescriptor,
    KeyCodeTable,
    translate,
    DEFAULT_KEY_TABLE,
    SHORT_PRESS_KEYS,
    LONG_PRESS_KEYS,
    Announcement,
    parse_announcement,
    encode_command,
  )

from .client import (
    IrUsbClientConfig,
    ConnectionState,
    PendingRequest,
    PendingRequestQueue,
    CommandChannel,
    DevicePropertySink,
    CachedPropertySink,
    SessionState,
    DeviceSession,
  )

from .discovery import DiscoveryListener

from .adapter import IrUsbAdapter
