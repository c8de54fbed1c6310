# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Passive discovery of IR-USB bridges on the local network.
"""

from .listener import DiscoveryListener, AnnouncementCallback
