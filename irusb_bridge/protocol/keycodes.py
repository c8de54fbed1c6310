#!/usr/bin/env python3

"""
IR-USB bridge HID key codes.

Maps symbolic remote-control key names to the HID usage code, usage page and
modifier byte that the bridge expects in a HIDCODE command. Keyboard page codes
follow https://source.android.com/devices/input/keyboard-devices#hid-keyboard-and-keypad-page-0x07

There is no protocol implementation here; only the key metadata and the
translation of a key into a HIDCODE payload.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..internal_types import *
from ..exceptions import UnknownKeyError

class KeyPage(Enum):
    """HID usage page of a key"""
    KEYBOARD = "keyboard"
    CONSUMER = "consumer"

class PressDuration(Enum):
    """How long a key is held down"""
    SHORT = "short"
    LONG = "long"

@dataclass(frozen=True)
class KeyDescriptor:
    """Metadata for a single key"""
    name: str
    """Symbolic key name, e.g., "PLAY"."""

    code: str
    """Three-digit decimal HID usage code."""

    page: KeyPage
    """HID usage page the code belongs to."""

    modifier: str
    """Three-character modifier field. For consumer keys this is actually the upper byte
       of the usage code. May contain the wildcard '*', which is sent as-is."""

lead_digit_map: Dict[Tuple[KeyPage, PressDuration], str] = {
    (KeyPage.KEYBOARD, PressDuration.SHORT): "1",
    (KeyPage.KEYBOARD, PressDuration.LONG): "5",
    (KeyPage.CONSUMER, PressDuration.SHORT): "2",
    (KeyPage.CONSUMER, PressDuration.LONG): "6",
  }
"""Leading digit of a HIDCODE payload for each usage page and press duration."""

RELEASE_CODE = "0000000"
"""HIDCODE payload that releases every key that is currently held down."""

def translate(descriptor: KeyDescriptor, duration: PressDuration=PressDuration.SHORT) -> str:
    """Returns the HIDCODE payload for pressing a key, e.g., "2000176" for a short PLAY."""
    lead_digit = lead_digit_map[(descriptor.page, duration)]
    return f"{lead_digit}{descriptor.modifier}{descriptor.code}"

class KeyCodeTable:
    """An immutable lookup table of key descriptors, indexed by name."""

    _keys: Dict[str, KeyDescriptor]

    def __init__(self, descriptors: Iterable[KeyDescriptor]):
        keys: Dict[str, KeyDescriptor] = {}
        for descriptor in descriptors:
            if len(descriptor.code) != 3 or not descriptor.code.isdigit():
                raise ValueError(f"Key code must be three digits: {descriptor}")
            if len(descriptor.modifier) != 3:
                raise ValueError(f"Key modifier must be three characters: {descriptor}")
            if descriptor.name in keys:
                raise ValueError(f"Duplicate key name: {descriptor.name}")
            keys[descriptor.name] = descriptor
        self._keys = keys

    def lookup(self, name: str) -> KeyDescriptor:
        """Returns the descriptor for a key name. Raises UnknownKeyError if there is none."""
        result = self._keys.get(name)
        if result is None:
            raise UnknownKeyError(f"Unknown key: {name!r}")
        return result

    def names(self) -> List[str]:
        return list(self._keys.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[KeyDescriptor]:
        return iter(self._keys.values())

def _consumer(name: str, code: str, modifier: str="000") -> KeyDescriptor:
    return KeyDescriptor(name, code, KeyPage.CONSUMER, modifier)

def _keyboard(name: str, code: str, modifier: str="000") -> KeyDescriptor:
    return KeyDescriptor(name, code, KeyPage.KEYBOARD, modifier)

DEFAULT_KEY_TABLE = KeyCodeTable((
    _consumer("PLAY", "176"),
    _consumer("PAUSE", "177"),
    _consumer("HOME", "035", "002"),
    _keyboard("ENTER", "040"),
    _keyboard("RIGHT", "079"),
    _keyboard("LEFT", "080"),
    _keyboard("DOWN", "081"),
    _keyboard("UP", "082"),
    _consumer("BACK", "036", "002"),
    _consumer("MUTE", "226"),
    _consumer("VOLUME_UP", "233"),
    _consumer("VOLUME_DOWN", "234"),
    _consumer("NEXT", "181"),
    _consumer("PREVIOUS", "182"),
    _consumer("STOP", "183", "00*"),
    _consumer("SLEEP", "050"),
    _consumer("REWIND", "180"),
    _consumer("FASTFORWARD", "179"),
    _consumer("RED", "105"),
    _consumer("GREEN", "106"),
    _consumer("BLUE", "107"),
    _consumer("YELLOW", "108"),
    _consumer("CLOSED_CAPTIONS", "097"),
    _consumer("CHANNEL_UP", "156"),
    _consumer("CHANNEL_DOWN", "157"),
  ))
"""The keys supported by IR-USB bridges."""

SHORT_PRESS_KEYS: Tuple[str, ...] = (
    "PLAY",
    "PAUSE",
    "ENTER",
    "HOME",
    "BACK",
    "UP",
    "DOWN",
    "LEFT",
    "RIGHT",
    "NEXT",
    "PREVIOUS",
    "REWIND",
    "FASTFORWARD",
    "MUTE",
    "VOLUME_UP",
    "VOLUME_DOWN",
    "RED",
    "GREEN",
    "BLUE",
    "YELLOW",
  )
"""Keys offered to the host for a short press."""

LONG_PRESS_KEYS: Tuple[str, ...] = (
    "ENTER",
    "FASTFORWARD",
    "REWIND",
    "UP",
    "DOWN",
    "LEFT",
    "RIGHT",
  )
"""Keys offered to the host for a long press."""
