"""This module contains the mDNS service advertisement discovery channel.

Sonos zone players advertise ``_sonos._tcp.local.`` over mDNS / DNS-SD. On
networks where SSDP multicast is filtered this is often the only way to find
them. Each advertisement is resolved to an IPv4 address and reported as the
URL of the player's description document, so that both channels feed the
same description fetcher.
"""

import logging
import socket
import threading
from concurrent.futures import ThreadPoolExecutor

from zeroconf import ServiceBrowser, ServiceListener, Zeroconf

from . import config

_LOG = logging.getLogger(__name__)

SONOS_SERVICE_TYPE = "_sonos._tcp.local."
SONOS_PORT = 1400
DESCRIPTION_PATH = "/xml/device_description.xml"


def description_url(address, port=SONOS_PORT):
    """Return the description document URL of a zone player."""
    return "http://{}:{}{}".format(address, port, DESCRIPTION_PATH)


class ServiceAdvertisementDiscoverer(ServiceListener):

    """Browses for Sonos service advertisements and reports description
    URLs.

    The discoverer is itself the `zeroconf.ServiceListener` of its browser.
    """

    def __init__(self, on_location, zeroconf_factory=None, executor=None):
        """
        Args:
            on_location (callable): Called with the description URL of each
                resolved advertisement.
            zeroconf_factory (callable): Returns a new `zeroconf.Zeroconf`.
                Defaults to `Zeroconf`.
            executor (concurrent.futures.Executor): Runs the resolutions.
                Defaults to a private thread pool.
        """
        self._on_location = on_location
        self._zeroconf_factory = zeroconf_factory or Zeroconf
        self._executor = executor
        self._owns_executor = executor is None
        self._lock = threading.Lock()
        self._zeroconf = None
        self._browser = None
        self._futures = set()

    @property
    def is_active(self):
        """bool: Whether browsing is running."""
        with self._lock:
            return self._zeroconf is not None

    def start(self):
        """Start browsing. Does nothing if already browsing."""
        with self._lock:
            if self._zeroconf is not None:
                return
            try:
                zeroconf = self._zeroconf_factory()
            except OSError as error:
                _LOG.warning("Can't start mDNS discovery: %s", error)
                return
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=4, thread_name_prefix="upcast-mdns"
                )
            self._zeroconf = zeroconf
            self._browser = ServiceBrowser(zeroconf, SONOS_SERVICE_TYPE, self)
        _LOG.info("mDNS discovery started for %s", SONOS_SERVICE_TYPE)

    def stop(self):
        """Stop browsing, cancel pending resolutions and close zeroconf.

        Resolutions that complete after this are ignored.
        """
        with self._lock:
            zeroconf, self._zeroconf = self._zeroconf, None
            browser, self._browser = self._browser, None
            futures, self._futures = self._futures, set()
            executor = None
            if self._owns_executor:
                executor, self._executor = self._executor, None
        for future in futures:
            future.cancel()
        if zeroconf is None:
            return
        if browser is not None:
            browser.cancel()
        zeroconf.close()
        if executor is not None:
            executor.shutdown(wait=False)
        _LOG.info("mDNS discovery stopped")

    # ServiceListener interface

    def add_service(self, zc, type_, name):
        """Service discovered: resolve it on a worker thread."""
        with self._lock:
            if zc is not self._zeroconf or self._executor is None:
                return
            executor = self._executor
        try:
            future = executor.submit(self._resolve, zc, type_, name)
        except RuntimeError:
            # The executor has been shut down
            return
        with self._lock:
            if zc is self._zeroconf:
                self._futures.add(future)
            else:
                future.cancel()
        future.add_done_callback(self._forget)

    def update_service(self, zc, type_, name):
        """Service updated"""

    def remove_service(self, zc, type_, name):
        """Service removed"""

    def _forget(self, future):
        with self._lock:
            self._futures.discard(future)

    def _resolve(self, zc, type_, name):
        timeout_ms = int(config.ADVERTISEMENT_RESOLVE_TIMEOUT * 1000)
        try:
            info = zc.get_service_info(type_, name, timeout=timeout_ms)
        except Exception as error:  # pylint: disable=broad-except
            _LOG.debug("Failed to resolve %s: %s", name, error)
            return
        if info is None:
            _LOG.debug("Timed out resolving %s", name)
            return
        # Only IPv4 addresses are listed here
        addresses = [socket.inet_ntoa(addr) for addr in info.addresses]
        if not addresses:
            _LOG.debug("Skipping %s: no IPv4 address", name)
            return
        with self._lock:
            if zc is not self._zeroconf:
                return
        location = description_url(addresses[0])
        _LOG.debug("Resolved %s to %s", name, location)
        self._on_location(location)
