# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IR-USB bridge emulator.

Provides a simple emulation of an IR-USB bridge on TCP/IP.
"""

from .emulator_impl import IrUsbEmulator
from .session import IrUsbEmulatorSession
