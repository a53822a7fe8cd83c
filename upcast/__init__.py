"""upcast finds UPnP/DLNA media renderers on the local network, resolves
Sonos speaker groups, and controls playback on them."""

import logging

from .devices import CastDevice
from .didl import CastMetadata
from .discovery import CastController
from .exceptions import (
    CastException,
    ConnectionFailed,
    NetworkError,
    PlaybackFailed,
    SessionNotActive,
    UnsupportedDevice,
)
from .registry import DeviceListener, DeviceRegistry
from .session import CastSession, SessionListener

# Will be parsed by setup.cfg to determine package metadata
__author__ = "The upcast developers"
# Please increment the version number and add the suffix "-dev" after
# a release, to make it possible to identify in-development code
__version__ = "0.1.0"
__license__ = "MIT License"

# You really should not `import *` - it is poor practice
# but if you do, here is what you get:
__all__ = [
    "CastController",
    "CastDevice",
    "CastException",
    "CastMetadata",
    "CastSession",
    "ConnectionFailed",
    "DeviceListener",
    "DeviceRegistry",
    "NetworkError",
    "PlaybackFailed",
    "SessionListener",
    "SessionNotActive",
    "UnsupportedDevice",
]

# http://docs.python.org/3/howto/logging.html#library-config
# Avoids spurious error messages if no logger is configured by the user

logging.getLogger(__name__).addHandler(logging.NullHandler())
