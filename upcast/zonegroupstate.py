"""Provides handling for ZoneGroupState information.

Sonos zones are not cast to one by one. A household is organised in groups,
and audio must be sent to the coordinator of a group, which distributes it to
the other members. The `TopologyResolver` therefore waits until the zones of
a household have been discovered, asks one of them for the zone group state
and replaces the Sonos entries of the registry with one device per group.

The ZoneGroupState payloads are identical between all speakers in a
household, so any known zone can be queried.

A payload has one ``ZoneGroup`` element per group, with a ``Coordinator``
attribute and one ``ZoneGroupMember`` child per zone.
"""

import functools
import logging

from lxml import etree as LXML

from . import config
from .exceptions import NetworkError, PlaybackFailed, UnknownXMLStructure
from .groups import SonosGroup
from .soap import SoapClient
from .utils import start_timer

_LOG = logging.getLogger(__name__)

ZONE_GROUP_TOPOLOGY_SERVICE = "urn:schemas-upnp-org:service:ZoneGroupTopology:1"


def topology_control_url(zone):
    """Return the ZoneGroupTopology control URL of a `SonosZoneInfo`."""
    return "http://{}:{}/ZoneGroupTopology/Control".format(zone.address, zone.port)


def parse_zone_group_state(payload):
    """Parse a ZoneGroupState payload into a list of `SonosGroup`.

    Members are listed in document order, satellites (eg the surrounds of a
    home theater) after the zone they belong to. Identifiers are prefixed
    with ``uuid:`` to match the UDNs of the description documents.

    Args:
        payload (str): The ``ZoneGroupState`` value returned by
            ``GetZoneGroupState``.

    Returns:
        list: a list of `SonosGroup`, in document order.

    Raises:
        UnknownXMLStructure: if the payload is empty or not XML.
    """
    if not payload or not payload.strip():
        raise UnknownXMLStructure("Empty ZoneGroupState payload")
    parser = LXML.XMLParser(remove_blank_text=True)  # pylint:disable=I1101
    try:
        tree = LXML.fromstring(payload.encode("utf-8"), parser)  # pylint:disable=I1101
    except LXML.XMLSyntaxError as error:  # pylint:disable=I1101
        raise UnknownXMLStructure("Unparsable ZoneGroupState payload") from error

    # Compatibility fallback for pre-10.1 firmwares
    # where a "ZoneGroups" element is not used
    zone_groups = tree.find("ZoneGroups")
    if zone_groups is None:
        zone_groups = tree

    groups = []
    for group_element in zone_groups.findall("ZoneGroup"):
        coordinator_uid = group_element.get("Coordinator")
        if not coordinator_uid:
            continue
        members = [
            "uuid:" + member.get("UUID")
            for member in group_element.iter("ZoneGroupMember", "Satellite")
            if member.get("UUID")
        ]
        groups.append(SonosGroup("uuid:" + coordinator_uid, members))
    return groups


def build_sonos_devices(zones, groups):
    """Build the Sonos devices for the registry.

    There is one device for each group whose coordinator is a known zone
    with a control URL. If no group qualifies (or ``groups`` is `None`
    because the topology could not be fetched) there is one device per
    zone with a control URL instead, skipping zones whose room name has
    already been used. The result never mixes groups and single zones.

    Args:
        zones (list): The known `SonosZoneInfo` instances.
        groups (list): The `SonosGroup` list, or `None`.

    Returns:
        list: a list of `CastDevice`.
    """
    zones_by_udn = {zone.udn: zone for zone in zones}
    devices = []
    for group in groups or ():
        coordinator = zones_by_udn.get(group.coordinator_udn)
        if coordinator is None:
            _LOG.debug("Coordinator %s not found in zones", group.coordinator_udn)
            continue
        if not coordinator.control_url:
            continue
        devices.append(coordinator.to_device(group.display_name(coordinator.room_name)))
    if devices:
        return devices

    _LOG.info("No groups usable, falling back to individual zones")
    room_names = set()
    for zone in zones:
        if not zone.control_url or zone.room_name in room_names:
            continue
        room_names.add(zone.room_name)
        devices.append(zone.to_device())
    return devices


class TopologyResolver:

    """Turns discovered Sonos zones into group aware devices.

    The first zone found in a discovery session arms a one-shot timer.
    When it fires, the zone group state is fetched once and the Sonos
    entries of the registry are replaced.
    """

    def __init__(self, registry, soap_client=None, timer_factory=None, settle_delay=None):
        """
        Args:
            registry (DeviceRegistry): Holds the zones and receives the
                devices.
            soap_client (SoapClient): Sends ``GetZoneGroupState``.
            timer_factory (callable): Called with a delay and a function,
                returns a started timer with a ``cancel()`` method.
            settle_delay (float): Seconds between the first zone and the
                topology query. Defaults to `config.TOPOLOGY_SETTLE_DELAY`.
        """
        self.registry = registry
        self.soap_client = soap_client if soap_client is not None else SoapClient()
        self._timer_factory = timer_factory or start_timer
        self.settle_delay = settle_delay

    def zone_discovered(self, zone, generation):
        """Store a newly discovered zone, arming the topology timer if it is
        the first one of the discovery session.

        Args:
            zone (SonosZoneInfo): The zone.
            generation (int): The discovery generation the zone was found
                in.
        """
        if not self.registry.add_zone(zone, generation):
            return
        _LOG.info("Found Sonos zone: %s at %s", zone.room_name, zone.address)
        delay = (
            self.settle_delay
            if self.settle_delay is not None
            else config.TOPOLOGY_SETTLE_DELAY
        )
        callback = functools.partial(self.resolve_sonos_groups, generation)
        if self.registry.arm_topology(
            generation, lambda: self._timer_factory(delay, callback)
        ):
            _LOG.info("Scheduling group topology fetch in %s seconds", delay)

    def resolve_sonos_groups(self, generation):
        """Run the topology pass armed for ``generation``.

        Does nothing if the pass has already run, or if the registry has
        been reset since.
        """
        if not self.registry.begin_topology_pass(generation):
            _LOG.debug("Skipping topology pass for generation %s", generation)
            return
        self._resolve(generation)

    def refresh(self):
        """Fetch the zone group state now, eg after a group change.

        Returns:
            list: The Sonos devices now in the registry, or `None` if no
            zone is known or the registry was reset meanwhile.
        """
        return self._resolve(self.registry.generation)

    def fetch_groups(self, zone):
        """Ask ``zone`` for the zone group state of its household.

        Returns:
            list: a list of `SonosGroup`.

        Raises:
            PlaybackFailed: if the query fails or the answer cannot be
                parsed.
            NetworkError: if the zone cannot be reached.
        """
        response = self.soap_client.call(
            ZONE_GROUP_TOPOLOGY_SERVICE, topology_control_url(zone), "GetZoneGroupState"
        )
        try:
            return parse_zone_group_state(response.get("ZoneGroupState"))
        except UnknownXMLStructure as error:
            raise PlaybackFailed(str(error)) from error

    def _resolve(self, generation):
        zones = self.registry.zones
        if not zones:
            _LOG.info("No Sonos zones found for group topology")
            return None
        zone = zones[0]
        _LOG.info("Fetching Sonos group topology from %s", zone.address)
        try:
            groups = self.fetch_groups(zone)
        except (PlaybackFailed, NetworkError) as error:
            _LOG.warning("Failed to fetch Sonos groups: %s", error)
            groups = None
        else:
            for group in groups:
                _LOG.debug(
                    "Found Sonos group - coordinator: %s, members: %d",
                    group.coordinator_udn,
                    group.member_count,
                )

        # Zones found while the query was running are included
        devices = build_sonos_devices(self.registry.zones, groups)
        if not self.registry.apply_sonos_devices(devices, groups or [], generation):
            _LOG.debug("Discarding stale topology for generation %s", generation)
            return None
        _LOG.info(
            "Created %d Sonos devices from %d groups",
            len(devices),
            len(groups or []),
        )
        return devices
