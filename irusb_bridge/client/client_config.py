# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IR-USB bridge client configuration.

Provides a general config object shared by the discovery listener, the adapter,
and the per-device sessions and command channels.
"""

from __future__ import annotations

import os

from ..internal_types import *
from ..exceptions import IrUsbError
from ..constants import (
    DISCOVERY_MULTICAST_GROUP,
    DISCOVERY_PORT,
    DEFAULT_BIND_ADDR,
    CONNECT_TIMEOUT,
    COMMAND_TIMEOUT,
    POLL_INTERVAL,
  )

def _env_float(name: str, default: float) -> float:
    value_str = os.environ.get(name)
    if value_str is None or value_str == '':
        return default
    try:
        return float(value_str)
    except ValueError as e:
        raise IrUsbError(f"Invalid value for environment variable {name}: {value_str!r}") from e

def _env_int(name: str, default: int) -> int:
    value_str = os.environ.get(name)
    if value_str is None or value_str == '':
        return default
    try:
        return int(value_str)
    except ValueError as e:
        raise IrUsbError(f"Invalid value for environment variable {name}: {value_str!r}") from e

class IrUsbClientConfig:
    """IR-USB bridge client configuration."""
    multicast_group: str
    discovery_port: int
    bind_addr: str
    connect_timeout_secs: float
    command_timeout_secs: float
    poll_interval_secs: float

    def __init__(
            self,
            *,
            multicast_group: Optional[str]=None,
            discovery_port: Optional[int]=None,
            bind_addr: Optional[str]=None,
            connect_timeout_secs: Optional[float]=None,
            command_timeout_secs: Optional[float]=None,
            poll_interval_secs: Optional[float]=None,
            base_config: Optional[IrUsbClientConfig]=None
          ) -> None:
        """Creates a configuration for an IR-USB bridge client.

           Args:
             multicast_group: The multicast group to listen on for bridge
                   announcements. If None, taken from the IRUSB_MULTICAST_GROUP
                   environment variable, or 239.255.255.250.
             discovery_port: The UDP port to listen on for bridge announcements.
                   If None, taken from IRUSB_DISCOVERY_PORT, or 1904.
             bind_addr: The local address to bind the discovery socket to.
                   If None, taken from IRUSB_BIND_ADDR, or 0.0.0.0.
             connect_timeout_secs: The timeout for opening a command connection,
                   in seconds. If None, taken from IRUSB_CONNECT_TIMEOUT, or 15.
             command_timeout_secs: The time to wait for the reply to a single
                   command, in seconds. If None, taken from IRUSB_COMMAND_TIMEOUT,
                   or 5.
             poll_interval_secs: The interval between state polls while a bridge
                   is connected, in seconds. If None, taken from IRUSB_POLL_INTERVAL,
                   or 5.
             base_config:
                   An optional base configuration to use instead of the
                   environment and built-in defaults.
        """
        if base_config is None:
            self.init_from_defaults()
        else:
            self.init_from_base_config(base_config)

        if multicast_group is not None and multicast_group != '':
            self.multicast_group = multicast_group

        if discovery_port is not None:
            self.discovery_port = discovery_port

        if bind_addr is not None and bind_addr != '':
            self.bind_addr = bind_addr

        if connect_timeout_secs is not None:
            self.connect_timeout_secs = connect_timeout_secs

        if command_timeout_secs is not None:
            self.command_timeout_secs = command_timeout_secs

        if poll_interval_secs is not None:
            self.poll_interval_secs = poll_interval_secs

        self.validate()

    def init_from_defaults(self) -> None:
        """Initializes the configuration from the environment and built-in defaults."""
        multicast_group = os.environ.get('IRUSB_MULTICAST_GROUP')
        if multicast_group is None or multicast_group == '':
            multicast_group = DISCOVERY_MULTICAST_GROUP
        self.multicast_group = multicast_group
        self.discovery_port = _env_int('IRUSB_DISCOVERY_PORT', DISCOVERY_PORT)
        bind_addr = os.environ.get('IRUSB_BIND_ADDR')
        if bind_addr is None or bind_addr == '':
            bind_addr = DEFAULT_BIND_ADDR
        self.bind_addr = bind_addr
        self.connect_timeout_secs = _env_float('IRUSB_CONNECT_TIMEOUT', CONNECT_TIMEOUT)
        self.command_timeout_secs = _env_float('IRUSB_COMMAND_TIMEOUT', COMMAND_TIMEOUT)
        self.poll_interval_secs = _env_float('IRUSB_POLL_INTERVAL', POLL_INTERVAL)

    def init_from_base_config(self, base_config: IrUsbClientConfig) -> None:
        """Initializes the configuration from a base configuration."""
        self.multicast_group = base_config.multicast_group
        self.discovery_port = base_config.discovery_port
        self.bind_addr = base_config.bind_addr
        self.connect_timeout_secs = base_config.connect_timeout_secs
        self.command_timeout_secs = base_config.command_timeout_secs
        self.poll_interval_secs = base_config.poll_interval_secs

    def validate(self) -> None:
        if self.discovery_port < 0 or self.discovery_port > 65535:
            raise IrUsbError(f"Invalid discovery port: {self.discovery_port}")
        for name in ('connect_timeout_secs', 'command_timeout_secs', 'poll_interval_secs'):
            if getattr(self, name) <= 0:
                raise IrUsbError(f"{name} must be positive: {getattr(self, name)}")

    @classmethod
    def from_jsonable(cls, jsonable: JsonableDict, base_config: Optional[IrUsbClientConfig]=None) -> Self:
        """Creates a configuration from a deserialized JSON object.

        Keys that are absent fall back to base_config, or to the environment defaults.
        """
        known_keys = (
            'multicast_group',
            'discovery_port',
            'bind_addr',
            'connect_timeout_secs',
            'command_timeout_secs',
            'poll_interval_secs',
          )
        unknown_keys = set(jsonable.keys()) - set(known_keys)
        if len(unknown_keys) > 0:
            raise IrUsbError(f"Unknown configuration keys: {', '.join(sorted(unknown_keys))}")
        try:
            multicast_group = jsonable.get('multicast_group')
            discovery_port = jsonable.get('discovery_port')
            bind_addr = jsonable.get('bind_addr')
            connect_timeout_secs = jsonable.get('connect_timeout_secs')
            command_timeout_secs = jsonable.get('command_timeout_secs')
            poll_interval_secs = jsonable.get('poll_interval_secs')
            return cls(
                multicast_group=None if multicast_group is None else str(multicast_group),
                discovery_port=None if discovery_port is None else int(discovery_port),  # type: ignore[arg-type]
                bind_addr=None if bind_addr is None else str(bind_addr),
                connect_timeout_secs=None if connect_timeout_secs is None else float(connect_timeout_secs),  # type: ignore[arg-type]
                command_timeout_secs=None if command_timeout_secs is None else float(command_timeout_secs),  # type: ignore[arg-type]
                poll_interval_secs=None if poll_interval_secs is None else float(poll_interval_secs),  # type: ignore[arg-type]
                base_config=base_config,
              )
        except (TypeError, ValueError) as e:
            raise IrUsbError(f"Invalid configuration: {e}") from e

    def to_jsonable(self) -> JsonableDict:
        return dict(
            multicast_group=self.multicast_group,
            discovery_port=self.discovery_port,
            bind_addr=self.bind_addr,
            connect_timeout_secs=self.connect_timeout_secs,
            command_timeout_secs=self.command_timeout_secs,
            poll_interval_secs=self.poll_interval_secs,
          )

    def __str__(self) -> str:
        return (
            f"IrUsbClientConfig("
            f"multicast_group={self.multicast_group}, "
            f"discovery_port={self.discovery_port}, "
            f"poll_interval_secs={self.poll_interval_secs!r})"
          )

    def __repr__(self) -> str:
        return str(self)
