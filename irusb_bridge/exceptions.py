# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

class IrUsbError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class UnknownKeyError(IrUsbError):
  """A key name is not present in the key code table."""
  pass

class DeviceConnectionError(IrUsbError):
  """Connecting to or writing to a bridge failed."""
  pass

class NotConnectedError(IrUsbError):
  """A command was issued while the bridge is not connected, or the
     connection closed before its reply arrived."""
  pass

class CommandTimeoutError(IrUsbError):
  """The bridge did not reply to a command in time."""
  pass

class UnexpectedPacketError(IrUsbError):
  """Data arrived from the bridge that matches no pending request."""
  pass

class MalformedAnnouncementError(IrUsbError):
  """A discovery datagram is not a valid bridge announcement."""
  pass

class UnknownDeviceError(IrUsbError):
  """No device with the given id is registered."""
  pass
