# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Interface between a device session and the host that presents it.

A DeviceSession does not know how its state is shown to users or automations.
It pushes every change through a DevicePropertySink that is injected when the
session is created. The REST server and the tests use CachedPropertySink.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..internal_types import *
from ..pkg_logging import logger

class DevicePropertySink(ABC):
    """Receives property updates and action results for one device."""

    @abstractmethod
    def publish(self, name: str, value: Jsonable) -> None:
        """Called with the current value of a device property ("power", "playing" or "app").

        Must be implemented by subclasses.
        """
        raise NotImplementedError()

    @abstractmethod
    def connected_notify(self, connected: bool) -> None:
        """Called when the command connection to the device opens or closes.

        Must be implemented by subclasses.
        """
        raise NotImplementedError()

    def report_action(self, name: str, result: Optional[str]) -> None:
        """Called with the reply to a completed action. The default implementation logs it."""
        logger.debug(f"{self}: Action {name} completed: {result!r}")

class CachedPropertySink(DevicePropertySink):
    """A sink that remembers the latest published values."""

    device_id: str
    properties: Dict[str, Jsonable]
    connected: bool
    last_action: Optional[Tuple[str, Optional[str]]]

    def __init__(self, device_id: str):
        self.device_id = device_id
        self.properties = {}
        self.connected = False
        self.last_action = None

    def publish(self, name: str, value: Jsonable) -> None:
        if self.properties.get(name) != value:
            logger.debug(f"{self}: {name} = {value!r}")
        self.properties[name] = value

    def connected_notify(self, connected: bool) -> None:
        self.connected = connected

    def report_action(self, name: str, result: Optional[str]) -> None:
        super().report_action(name, result)
        self.last_action = (name, result)

    def __str__(self) -> str:
        return f"CachedPropertySink({self.device_id})"

    def __repr__(self) -> str:
        return str(self)
