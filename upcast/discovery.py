"""This module contains the `CastController`, which ties discovery and
control together.

Example:

    >>> from upcast import CastController
    >>> controller = CastController()
    >>> controller.start_discovery()
    >>> # ... a few seconds later
    >>> for device in controller.devices:
    ...     print(device.name, device.type_display_name)
    Living Room +1 Sonos
    [TV] Samsung 7 Series TVs
    >>> session = controller.connect(controller.devices[0])
    >>> session.cast('http://192.168.1.2:8000/stream.mp3')
"""

import logging
import threading

import requests

from . import config
from .advertisement import ServiceAdvertisementDiscoverer
from .description import DescriptionFetcher
from .exceptions import UnsupportedDevice
from .groups import GroupSummary, ZoneSummary
from .registry import DeviceRegistry
from .session import CastSession
from .soap import SoapClient
from .ssdp import SsdpDiscoverer
from .utils import start_timer
from .xml import AV_TRANSPORT_SERVICE
from .zonegroupstate import TopologyResolver

_LOG = logging.getLogger(__name__)


def rincon_id(udn):
    """Return the ``RINCON_...`` identifier of a Sonos UDN.

    >>> rincon_id('uuid:RINCON_000E58XXXXXX01400')
    'RINCON_000E58XXXXXX01400'
    """
    if udn.startswith("uuid:"):
        return udn[len("uuid:"):]
    return udn


# pylint: disable=too-many-instance-attributes,too-many-arguments
class CastController:

    """Discovers renderers and manages the active cast session.

    All collaborators can be passed in, which is mostly useful for testing.
    Those that are not are built here and share one `requests.Session`.
    """

    def __init__(
        self,
        registry=None,
        soap_client=None,
        fetcher=None,
        resolver=None,
        ssdp=None,
        advertisement=None,
        timer_factory=None,
    ):
        """
        Args:
            registry (DeviceRegistry): The device registry.
            soap_client (SoapClient): Used for topology queries, sessions
                and grouping commands.
            fetcher (DescriptionFetcher): Resolves description URLs.
            resolver (TopologyResolver): Resolves Sonos groups.
            ssdp (SsdpDiscoverer): The SSDP discovery channel.
            advertisement (ServiceAdvertisementDiscoverer): The mDNS
                discovery channel. Pass `False` to disable it.
            timer_factory (callable): Called with a delay and a function,
                returns a started timer with a ``cancel()`` method.
        """
        self._http = requests.Session()
        self.registry = registry if registry is not None else DeviceRegistry()
        self.soap_client = (
            soap_client if soap_client is not None else SoapClient(session=self._http)
        )
        self.resolver = (
            resolver
            if resolver is not None
            else TopologyResolver(self.registry, self.soap_client)
        )
        self.fetcher = (
            fetcher
            if fetcher is not None
            else DescriptionFetcher(self.registry, self.resolver, session=self._http)
        )
        self.ssdp = ssdp if ssdp is not None else SsdpDiscoverer(self.fetcher.fetch)
        if advertisement is None:
            advertisement = ServiceAdvertisementDiscoverer(self.fetcher.fetch)
        self.advertisement = advertisement or None
        self._timer_factory = timer_factory or start_timer
        self._lock = threading.Lock()
        self._discovering = False
        self._refresh_timers = []
        self._session = None
        self._session_listeners = []

    # Discovery

    @property
    def devices(self):
        """list: The discovered devices."""
        return self.registry.devices

    def add_device_listener(self, listener):
        """Register a `DeviceListener` with the registry."""
        self.registry.add_listener(listener)

    def remove_device_listener(self, listener):
        """Unregister a `DeviceListener`."""
        self.registry.remove_listener(listener)

    @property
    def is_discovering(self):
        """bool: Whether discovery is running."""
        with self._lock:
            return self._discovering

    def start_discovery(self):
        """Start both discovery channels. Does nothing if already running."""
        with self._lock:
            if self._discovering:
                return
            self._discovering = True
        _LOG.info("Starting discovery")
        self.ssdp.start()
        if self.advertisement is not None:
            self.advertisement.start()

    def stop_discovery(self):
        """Stop both discovery channels."""
        with self._lock:
            self._discovering = False
        self.ssdp.stop()
        if self.advertisement is not None:
            self.advertisement.stop()
        _LOG.info("Stopped discovery")

    def send_discovery_boost(self):
        """Send an extra SSDP search round now, if discovery is running."""
        self.ssdp.boost()

    def refresh_devices(self):
        """Rediscover devices without emptying the device list.

        Discovery is stopped and its state reset. It is restarted after
        `config.REFRESH_RESTART_DELAY` seconds, and extra search rounds
        follow at `config.REFRESH_BOOST_DELAYS`.
        """
        _LOG.info("Refreshing devices")
        self._cancel_refresh_timers()
        self.stop_discovery()
        self.registry.reset(keep_devices=True)
        timers = [
            self._timer_factory(config.REFRESH_RESTART_DELAY, self.start_discovery)
        ]
        for delay in config.REFRESH_BOOST_DELAYS:
            timers.append(self._timer_factory(delay, self.send_discovery_boost))
        with self._lock:
            self._refresh_timers = timers

    def clear_devices(self):
        """Cancel all discovery work in progress and empty the device list."""
        self.registry.clear()

    def _cancel_refresh_timers(self):
        with self._lock:
            timers, self._refresh_timers = self._refresh_timers, []
        for timer in timers:
            timer.cancel()

    def close(self):
        """Stop discovery, disconnect and release all resources."""
        self._cancel_refresh_timers()
        self.stop_discovery()
        self.disconnect()
        self.registry.clear()
        self.fetcher.shutdown()
        self._http.close()

    # The cast session

    @property
    def active_session(self):
        """CastSession: The connected session, or `None`."""
        return self._session

    def add_session_listener(self, listener):
        """Register a `SessionListener` for current and future sessions."""
        if listener not in self._session_listeners:
            self._session_listeners.append(listener)
        if self._session is not None:
            self._session.add_listener(listener)

    def remove_session_listener(self, listener):
        """Unregister a `SessionListener`."""
        if listener in self._session_listeners:
            self._session_listeners.remove(listener)
        if self._session is not None:
            self._session.remove_listener(listener)

    def connect(self, device):
        """Open a session with ``device``, disconnecting the current one
        first.

        Returns:
            CastSession: The new session.

        Raises:
            UnsupportedDevice: if the device cannot be controlled.
        """
        self.disconnect()
        session = CastSession(self.soap_client, listeners=self._session_listeners)
        session.connect(device)
        self._session = session
        return session

    def disconnect(self):
        """Disconnect the current session, if any."""
        session, self._session = self._session, None
        if session is not None:
            session.disconnect()

    # Sonos grouping

    @property
    def all_sonos_zones(self):
        """list: A `ZoneSummary` for every known Sonos zone, sorted by room
        name."""
        zones = [
            ZoneSummary(zone.udn, zone.room_name, zone.address)
            for zone in self.registry.zones
        ]
        return sorted(zones, key=lambda zone: zone.room_name.lower())

    @property
    def sonos_groups(self):
        """list: A `GroupSummary` for every group of the last topology
        query."""
        summaries = []
        for group in self.registry.groups:
            summaries.append(
                GroupSummary(
                    coordinator_udn=group.coordinator_udn,
                    coordinator_name=self.zone_name(group.coordinator_udn)
                    or group.coordinator_udn,
                    member_udns=list(group.member_udns),
                    member_names=[
                        self.zone_name(udn) or udn for udn in group.member_udns
                    ],
                )
            )
        return summaries

    def zone_name(self, udn):
        """Return the room name of a Sonos zone, or `None` if it is not
        known."""
        zone = self.registry.get_zone(udn)
        return zone.room_name if zone is not None else None

    def _controllable_zone(self, udn):
        zone = self.registry.get_zone(udn)
        if zone is None:
            raise UnsupportedDevice("Unknown Sonos zone: {}".format(udn))
        if not zone.control_url:
            raise UnsupportedDevice("Sonos zone {} has no AVTransport".format(udn))
        return zone

    def join_sonos_zone(self, zone_udn, coordinator_udn):
        """Add a zone to the group of another zone, then refresh the groups.

        Args:
            zone_udn (str): The UDN of the zone to move.
            coordinator_udn (str): The UDN of the coordinator of the group to
                join.

        Raises:
            UnsupportedDevice: if the zone is not known.
        """
        zone = self._controllable_zone(zone_udn)
        _LOG.info("Joining %s to %s", zone.room_name, coordinator_udn)
        self.soap_client.call(
            AV_TRANSPORT_SERVICE,
            zone.control_url,
            "SetAVTransportURI",
            [
                ("InstanceID", 0),
                ("CurrentURI", "x-rincon:{}".format(rincon_id(coordinator_udn))),
                ("CurrentURIMetaData", ""),
            ],
        )
        self.refresh_sonos_groups()

    def unjoin_sonos_zone(self, zone_udn):
        """Remove a zone from its group, then refresh the groups.

        Seems to work ok even if the zone was the coordinator of its group,
        or not in a group at all.
        """
        zone = self._controllable_zone(zone_udn)
        _LOG.info("Making %s standalone", zone.room_name)
        self.soap_client.call(
            AV_TRANSPORT_SERVICE,
            zone.control_url,
            "BecomeCoordinatorOfStandaloneGroup",
            [("InstanceID", 0)],
        )
        self.refresh_sonos_groups()

    def refresh_sonos_groups(self):
        """Query the zone group topology again and update the devices."""
        return self.resolver.refresh()
