"""This module contains classes and functionality relating to Sonos Groups."""

from collections import namedtuple

from .devices import SONOS_GROUP, CastDevice


class SonosZoneInfo(
    namedtuple(
        "SonosZoneInfoBase",
        "udn, room_name, address, port, control_url, description_url",
    )
):
    """A physical Sonos unit, as found in its description document."""

    def to_device(self, name=None):
        """Return a `CastDevice` addressing this zone on its own.

        Args:
            name (str, optional): The display name. Defaults to the room
                name.
        """
        return CastDevice(
            id=self.udn,
            name=name if name is not None else self.room_name,
            device_type=SONOS_GROUP,
            address=self.address,
            port=self.port,
            manufacturer="Sonos",
            control_url=self.control_url,
            description_url=self.description_url,
        )


class SonosGroup:

    """
    A Sonos group, as reported by the ZoneGroupTopology service. It looks
    like this::

        SonosGroup(
            coordinator_udn='uuid:RINCON_000FD584236D01400',
            member_udns=['uuid:RINCON_000FD584236D01400',
                         'uuid:RINCON_000E58XXXXXX01400']
        )

    Groups are recomputed from every topology query and never cached.

    For convenience, SonosGroup is also a container::

        >>> 'uuid:RINCON_000E58XXXXXX01400' in group
        True
    """

    def __init__(self, coordinator_udn, member_udns=None):
        """
        Args:
            coordinator_udn (str): The UDN (``uuid:RINCON_...``) of the zone
                which coordinates this group.
            member_udns (Iterable[str]): The UDNs of the members of the
                group, in topology order. The coordinator is a member.
        """
        #: The UDN of the zone which coordinates this group
        self.coordinator_udn = coordinator_udn
        #: The UDNs of the members of the group
        self.member_udns = list(member_udns) if member_udns is not None else []

    def __iter__(self):
        return self.member_udns.__iter__()

    def __contains__(self, member_udn):
        return member_udn in self.member_udns

    def __len__(self):
        return len(self.member_udns)

    def __eq__(self, other):
        if not isinstance(other, SonosGroup):
            return NotImplemented
        return (self.coordinator_udn, self.member_udns) == (
            other.coordinator_udn,
            other.member_udns,
        )

    def __repr__(self):
        return "{}(coordinator_udn='{}', member_udns={!r})".format(
            self.__class__.__name__, self.coordinator_udn, self.member_udns
        )

    @property
    def member_count(self):
        """int: The number of members, including the coordinator."""
        return len(self.member_udns)

    def display_name(self, room_name):
        """Return the name of the group for display.

        >>> group.display_name('Kitchen')
        'Kitchen +1'

        Args:
            room_name (str): The room name of the coordinator.
        """
        if self.member_count > 1:
            return "{} +{}".format(room_name, self.member_count - 1)
        return room_name


#: A summary of one zone for a grouping user interface.
ZoneSummary = namedtuple("ZoneSummary", "udn, room_name, address")

#: A summary of one group for a grouping user interface.
GroupSummary = namedtuple(
    "GroupSummary", "coordinator_udn, coordinator_name, member_udns, member_names"
)
