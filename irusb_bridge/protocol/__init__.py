# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Low-level protocol definitions for IR-USB bridges.

Covers the HID key table, command framing, and discovery announcements.
"""

from .keycodes import (
    KeyPage,
    PressDuration,
    KeyDescriptor,
    KeyCodeTable,
    translate,
    DEFAULT_KEY_TABLE,
    SHORT_PRESS_KEYS,
    LONG_PRESS_KEYS,
    RELEASE_CODE,
  )

from .framing import (
    encode_command,
    reply_segments,
    clean_reply,
  )

from .announcement import (
    Announcement,
    parse_announcement,
  )
