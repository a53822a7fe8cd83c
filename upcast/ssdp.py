"""This module contains the SSDP discovery channel.

An `SsdpDiscoverer` multicasts ``M-SEARCH`` requests for media renderers and
Sonos zone players and passes the ``LOCATION`` of every response to a
callback. Several search rounds are sent after `SsdpDiscoverer.start`,
because UDP is unreliable and some renderers are slow to answer.

Here is a sample response from a real Sonos device (actual numbers have been
redacted)::

    HTTP/1.1 200 OK
    CACHE-CONTROL: max-age = 1800
    EXT:
    LOCATION: http://***.***.***.***:1400/xml/device_description.xml
    SERVER: Linux UPnP/1.0 Sonos/26.1-76230 (ZPS3)
    ST: urn:schemas-upnp-org:device:ZonePlayer:1
    USN: uuid:RINCON_B8*************00::urn:schemas-upnp-org:device:
                                                        ZonePlayer:1
"""

import logging
import select
import socket
import struct
import threading

from . import config
from .utils import start_timer

_LOG = logging.getLogger(__name__)

MCAST_GRP = "239.255.255.250"
MCAST_PORT = 1900

#: The ``ST`` values searched for in every round.
SEARCH_TARGETS = (
    "urn:schemas-upnp-org:device:MediaRenderer:1",
    "urn:schemas-upnp-org:device:ZonePlayer:1",
)


def build_search_message(search_target, user_agent=None):
    """Build an ``M-SEARCH`` request.

    Args:
        search_target (str): The ``ST`` header value.
        user_agent (str): The ``USER-AGENT`` header value. Defaults to
            `config.USER_AGENT`.

    Returns:
        bytes: The request, with CRLF line endings.
    """
    if user_agent is None:
        user_agent = config.USER_AGENT
    lines = [
        "M-SEARCH * HTTP/1.1",
        "HOST: {}:{}".format(MCAST_GRP, MCAST_PORT),
        'MAN: "ssdp:discover"',
        "MX: 3",
        "ST: {}".format(search_target),
        "USER-AGENT: {}".format(user_agent),
        "",
        "",
    ]
    return "\r\n".join(lines).encode("utf-8")


def parse_location(response):
    """Return the ``LOCATION`` header of an SSDP response.

    Header names are matched case-insensitively and the first match wins.

    Args:
        response (bytes or str): The raw response datagram.

    Returns:
        str: The location URL, or `None` if the response has no (non-empty)
        ``LOCATION`` header.
    """
    if isinstance(response, bytes):
        response = response.decode("utf-8", errors="replace")
    for line in response.splitlines():
        name, sep, value = line.partition(":")
        if not sep:
            continue
        if name.strip().lower() == "location":
            value = value.strip()
            return value or None
    return None


def create_socket(interface_addr=None):
    """Create and return a UDP socket with options set for multicast search.

    Args:
        interface_addr (str): The dotted quad address of the interface to
            send from, or `None` for the system default.
    """
    _sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        _sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        # UPnP v1.0 requires a TTL of 4
        _sock.setsockopt(
            socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, struct.pack("B", 4)
        )
        if interface_addr is not None:
            _sock.setsockopt(
                socket.IPPROTO_IP,
                socket.IP_MULTICAST_IF,
                socket.inet_aton(interface_addr),
            )
        _sock.bind(("", 0))
    except OSError:
        _sock.close()
        raise
    return _sock


# pylint: disable=too-many-instance-attributes
class SsdpDiscoverer:

    """Sends SSDP searches and reports the locations of responding devices.

    Example:

        >>> discoverer = SsdpDiscoverer(print)
        >>> discoverer.start()
        http://192.168.1.101:1400/xml/device_description.xml
        ...
        >>> discoverer.stop()

    Every location is reported, including repeats. Removing duplicates is
    up to the receiver.
    """

    def __init__(
        self,
        on_location,
        interface_addr=None,
        schedule=None,
        socket_factory=None,
        timer_factory=None,
    ):
        """
        Args:
            on_location (callable): Called with each ``LOCATION`` URL, on the
                reader thread.
            interface_addr (str): The address of the interface to send
                from. Defaults to `config.SSDP_INTERFACE_ADDR`.
            schedule (Iterable[float]): The offsets of the search rounds.
                Defaults to `config.SSDP_SEARCH_SCHEDULE`.
            socket_factory (callable): Called with ``interface_addr`` to
                create the socket. Defaults to `create_socket`.
            timer_factory (callable): Called with a delay and a function,
                returns a started timer with a ``cancel()`` method.
                Defaults to a daemon `threading.Timer`.
        """
        self._on_location = on_location
        self.interface_addr = interface_addr
        self.schedule = schedule
        self._socket_factory = socket_factory or create_socket
        self._timer_factory = timer_factory or start_timer
        self._lock = threading.Lock()
        self._sock = None
        self._stop_event = None
        self._thread = None
        self._timers = []

    @property
    def is_active(self):
        """bool: Whether discovery is running."""
        with self._lock:
            return self._sock is not None

    def start(self):
        """Open the socket, start the reader thread and schedule the search
        rounds.

        Does nothing if discovery is already running. If the socket cannot
        be created a warning is logged and discovery stays inactive.
        """
        interface_addr = (
            self.interface_addr
            if self.interface_addr is not None
            else config.SSDP_INTERFACE_ADDR
        )
        schedule = (
            self.schedule if self.schedule is not None else config.SSDP_SEARCH_SCHEDULE
        )
        with self._lock:
            if self._sock is not None:
                return
            try:
                self._sock = self._socket_factory(interface_addr)
            except OSError as error:
                _LOG.warning("Can't make an SSDP discovery socket: %s", error)
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._read_responses,
                args=(self._sock, self._stop_event),
                name="upcast-ssdp",
                daemon=True,
            )
            self._thread.start()
            self._timers = [
                self._timer_factory(offset, self.search) for offset in schedule
            ]
        _LOG.info("SSDP discovery started, %d search rounds", len(schedule))

    def stop(self):
        """Stop discovery. Safe to call when discovery is not running."""
        with self._lock:
            sock, self._sock = self._sock, None
            timers, self._timers = self._timers, []
            thread, self._thread = self._thread, None
            if self._stop_event is not None:
                self._stop_event.set()
            self._stop_event = None
        for timer in timers:
            timer.cancel()
        if sock is None:
            return
        if thread is not None and thread is not threading.current_thread():
            thread.join(1.0)
        sock.close()
        _LOG.info("SSDP discovery stopped")

    def boost(self):
        """Send one extra search round now, if discovery is running."""
        if self.is_active:
            self.search()

    def search(self):
        """Send one ``M-SEARCH`` for each of the `SEARCH_TARGETS`."""
        with self._lock:
            sock = self._sock
        if sock is None:
            return
        for target in SEARCH_TARGETS:
            try:
                sock.sendto(build_search_message(target), (MCAST_GRP, MCAST_PORT))
            except OSError as error:
                _LOG.warning("Failed to send M-SEARCH for %s: %s", target, error)
        _LOG.debug("Sent M-SEARCH for %s", ", ".join(SEARCH_TARGETS))

    def _read_responses(self, sock, stop_event):
        while not stop_event.is_set():
            try:
                # The select timeout is kept short so that stop() is noticed
                # quickly
                readable, _, _ = select.select([sock], [], [], 0.1)
                if not readable:
                    continue
                data, addr = sock.recvfrom(4096)
            except (OSError, ValueError) as error:
                # ValueError is raised by select on a closed socket
                if not stop_event.is_set():
                    _LOG.warning("SSDP socket error: %s", error)
                return
            _LOG.debug('Received discovery response from %s: "%s"', addr, data)
            location = parse_location(data)
            if location is None:
                _LOG.debug("Dropping SSDP response without LOCATION from %s", addr)
                continue
            try:
                self._on_location(location)
            except Exception:  # pylint: disable=broad-except
                _LOG.exception("Failed to handle location %s", location)
