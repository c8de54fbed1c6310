# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A REST FastAPI server that exposes discovered IR-USB bridges.
"""
from .app import bridge_api, get_adapter, get_bridge_config, get_raw_config
