#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Runs the IR-USB bridge REST server under uvicorn.

Listens on IRUSB_BRIDGE_HOST:IRUSB_BRIDGE_PORT (default 0.0.0.0:8000).
"""

from __future__ import annotations

import os
import logging

import uvicorn

from .app import bridge_api

def main() -> None:
    log_level = os.environ.get("IRUSB_BRIDGE_LOG_LEVEL", "info")
    logging.basicConfig(level=log_level.upper())
    uvicorn.run(
        bridge_api,
        host=os.environ.get("IRUSB_BRIDGE_HOST", "0.0.0.0"),
        port=int(os.environ.get("IRUSB_BRIDGE_PORT", "8000")),
        log_level=log_level,
      )

if __name__ == "__main__":
    main()
