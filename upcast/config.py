"""This module contains configuration variables.

They may be set by your code as follows::

    from upcast import config
    ...
    config.VARIABLE = value

Values are read when they are used, so most of them can be changed at
runtime. Arguments passed to the constructors of the discovery and control
classes take precedence over the values here.
"""

REQUEST_TIMEOUT = 10.0
"""The timeout (in seconds) used when sending SOAP commands to a renderer.

Can be a float, an int, or None. If set to 'None', calls can potentially wait
indefinitely.
"""

DESCRIPTION_TIMEOUT = 5.0
"""The timeout (in seconds) used when fetching a device description document.

See also:
    The :mod:`upcast.description` module.
"""

SOAP_MAX_RETRIES = 2
"""The number of times a SOAP command is retried after a transient failure.

Only HTTP 500, 502, 503 and 504 responses and network level errors are
considered transient. With the default of 2 a command is attempted at most
three times.
"""

SOAP_RETRY_BASE_DELAY = 0.5
"""The delay (in seconds) before the first retry of a SOAP command.

The delay doubles for every further retry (0.5s, 1s, ...).
"""

SSDP_SEARCH_SCHEDULE = (0.5, 3.0, 6.0, 9.0, 12.0)
"""Offsets (in seconds, from the start of discovery) of the M-SEARCH rounds.

Several rounds are sent because UDP is unreliable and some renderers are slow
to answer.
"""

SSDP_INTERFACE_ADDR = None
"""The IPv4 address of the interface used to send SSDP multicast datagrams.

The default of None means the system default interface for UDP multicast
messages will be used. This is probably what you want to happen.
"""

USER_AGENT = "upcast/0.1 UPnP/1.1"
"""The value of the USER-AGENT header sent with M-SEARCH requests."""

TOPOLOGY_SETTLE_DELAY = 3.0
"""Seconds to wait after the first Sonos zone is seen before the zone group
topology is queried, so that the other zones of the household can be
discovered in the meantime.

See also:
    The :mod:`upcast.zonegroupstate` module.
"""

ADVERTISEMENT_RESOLVE_TIMEOUT = 5.0
"""Seconds to wait for an mDNS service advertisement to resolve."""

REFRESH_RESTART_DELAY = 2.0
"""Seconds between stopping and restarting discovery during a refresh."""

REFRESH_BOOST_DELAYS = (10.0, 15.0)
"""Offsets (in seconds, from the start of a refresh) of the extra M-SEARCH
rounds sent after a refresh."""

EXCLUDED_MANUFACTURERS = (
    "synology",
    "netgear",
    "directv",
    "pace",
    "signify",
    "philips hue",
    "qnap",
    "western digital",
    "asustor",
)
"""Manufacturer name fragments (lower case) of devices that advertise UPnP
services but cannot be cast to, eg NAS boxes, routers and lighting hubs."""

SONOS_MANUFACTURERS = ("sonos",)
"""Manufacturer name fragments (lower case) identifying Sonos zone players."""

TV_MANUFACTURERS = (
    "samsung",
    "lg",
    "sony",
    "vizio",
    "philips",
    "panasonic",
    "hisense",
    "tcl",
    "sharp",
    "toshiba",
)
"""Manufacturer name fragments (lower case) of TV vendors known to ship DLNA
media renderers."""
