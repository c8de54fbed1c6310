# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Type hints used internally by irusb_bridge"""

from __future__ import annotations

from types import TracebackType

from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Self,
    Set,
    Tuple,
    Type,
    Union,
  )

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A type that can be serialized to JSON."""

JsonableDict = Dict[str, Jsonable]
"""A dictionary that can be serialized to JSON."""

__all__ = [
    'TYPE_CHECKING',
    'Any',
    'AsyncIterator',
    'Awaitable',
    'Callable',
    'Dict',
    'Iterable',
    'Iterator',
    'List',
    'Optional',
    'Self',
    'Set',
    'Tuple',
    'Type',
    'TracebackType',
    'Union',
    'Jsonable',
    'JsonableDict',
  ]
