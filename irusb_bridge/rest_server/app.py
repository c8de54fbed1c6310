#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A REST FastAPI server that exposes discovered IR-USB bridges.
"""

from __future__ import annotations

from fastapi import FastAPI

import time
import os
import json

from contextlib import asynccontextmanager

from .logger import logger
from ..internal_types import *
from .. import (
    __version__ as pkg_version,
    IrUsbAdapter,
    IrUsbClientConfig,
  )

from .api import router as api_router, install_error_handlers

@asynccontextmanager
async def fastapi_lifetime(app: FastAPI) -> AsyncIterator[None]:
    """
    A context manager that initializes and cleans up for FastAPI.
    """

    logger.info(f"IR-USB bridge REST server {pkg_version} starting up--initializing...")
    config_file = os.environ.get("IRUSB_BRIDGE_CONFIG", None)
    if config_file is None:
        if os.path.exists("irusb_bridge_config.json"):
            config_file = "irusb_bridge_config.json"
    if config_file is None:
        raw_config: JsonableDict = {}
    else:
        with open(config_file, "r") as f:
            raw_config = json.load(f)
    app.state.raw_config = raw_config
    bridge_config = IrUsbClientConfig.from_jsonable(raw_config)
    app.state.bridge_config = bridge_config
    app.state.launch_time = time.monotonic()
    adapter = IrUsbAdapter(config=bridge_config)
    app.state.adapter = adapter
    try:
        await adapter.start()
        logger.info(f"Serving API for {adapter} with {bridge_config}...")
        logger.info("IR-USB bridge REST server initialization done; starting server...")
        yield
    finally:
        logger.info("IR-USB bridge REST server shutting down--cleaning up...")
        await adapter.aclose()

bridge_api = FastAPI(lifespan=fastapi_lifetime)
bridge_api.include_router(api_router)
install_error_handlers(bridge_api)

def get_adapter() -> IrUsbAdapter:
    return bridge_api.state.adapter

def get_bridge_config() -> IrUsbClientConfig:
    return bridge_api.state.bridge_config

def get_raw_config() -> JsonableDict:
    return bridge_api.state.raw_config
