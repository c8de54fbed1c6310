# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IR-USB bridge client.

Provides the per-bridge command channel and device session, and the
interface through which sessions publish state to their host.
"""

from .client_config import IrUsbClientConfig
from .command_channel import (
    ConnectionState,
    PendingRequest,
    PendingRequestQueue,
    CommandChannel,
  )
from .host_interface import DevicePropertySink, CachedPropertySink
from .device_session import (
    SessionState,
    DeviceSession,
    WRITABLE_PROPERTIES,
    ACTIONS,
  )
