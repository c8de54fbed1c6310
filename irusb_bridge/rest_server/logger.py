#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Logging for the IR-USB bridge REST server.
"""

from __future__ import annotations

import logging

logger = logging.getLogger('irusb_bridge.rest_server')
