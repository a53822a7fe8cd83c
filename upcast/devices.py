"""This module contains the class representing a castable device."""

#: A Sonos group, addressed through its coordinator, or a standalone zone.
SONOS_GROUP = "sonosGroup"
#: A DLNA media renderer, usually a TV.
DLNA_RENDERER = "dlnaRenderer"

DEVICE_TYPES = (SONOS_GROUP, DLNA_RENDERER)

DISPLAY_NAMES = {SONOS_GROUP: "Sonos", DLNA_RENDERER: "TVs"}


# pylint: disable=too-many-instance-attributes,too-many-arguments
class CastDevice:

    """A renderer that media can be cast to.

    Instances are treated as values: they are created by discovery and
    copied to callers, and never change afterwards. Two devices are equal if
    they have the same `id`::

        CastDevice(
            id='uuid:RINCON_000E58XXXXXX01400',
            name='Living Room +1',
            device_type='sonosGroup',
            address='192.168.1.101',
            port=1400,
            ...
        )
    """

    def __init__(
        self,
        id,  # pylint: disable=redefined-builtin,invalid-name
        name,
        device_type,
        address,
        port,
        manufacturer=None,
        model_name=None,
        control_url=None,
        description_url=None,
    ):
        """
        Args:
            id (str): The device UDN, or the coordinator UDN for a Sonos
                group.
            name (str): The display name.
            device_type (str): One of `SONOS_GROUP` or `DLNA_RENDERER`.
            address (str): The IP address (or host name) of the device.
            port (int): The port of the device's UPnP server.
            manufacturer (str): The manufacturer from the description.
            model_name (str): The model name from the description.
            control_url (str): The absolute AVTransport control URL. Devices
                without one cannot be controlled.
            description_url (str): The URL of the description document.
        """
        self.id = id  # pylint: disable=invalid-name
        self.name = name
        self.device_type = device_type
        self.address = address
        self.port = port
        self.manufacturer = manufacturer
        self.model_name = model_name
        self.control_url = control_url
        self.description_url = description_url

    def __eq__(self, other):
        if not isinstance(other, CastDevice):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return "{}(id={!r}, name={!r}, device_type={!r}, address={!r})".format(
            self.__class__.__name__, self.id, self.name, self.device_type, self.address
        )

    @property
    def is_controllable(self):
        """bool: Whether the device can be sent AVTransport commands."""
        return self.device_type in DEVICE_TYPES and bool(self.control_url)

    @property
    def rendering_control_url(self):
        """str: The RenderingControl control URL.

        Sonos speakers and the DLNA renderers this package supports expose
        RenderingControl at a fixed path, which is not necessarily the path
        of the AVTransport service.
        """
        return "http://{}:{}/MediaRenderer/RenderingControl/Control".format(
            self.address, self.port
        )

    @property
    def type_display_name(self):
        """str: A human readable name for the device type."""
        return DISPLAY_NAMES.get(self.device_type, self.device_type)
