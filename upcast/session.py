"""This module contains the cast session, which controls playback on one
renderer.

A session moves between three states::

    disconnected --connect()--> connected --cast()--> casting
                                    ^                    |
                                    +------stop()--------+

Transport commands go to the AVTransport control URL of the device, volume
commands to its RenderingControl service.
"""

import logging

from .didl import CastMetadata
from .exceptions import (
    CastException,
    ConnectionFailed,
    SessionNotActive,
    UnsupportedDevice,
)
from .soap import SoapClient
from .utils import format_time, parse_time
from .xml import AV_TRANSPORT_SERVICE

_LOG = logging.getLogger(__name__)

RENDERING_CONTROL_SERVICE = "urn:schemas-upnp-org:service:RenderingControl:1"

DISCONNECTED = "disconnected"
CONNECTED = "connected"
CASTING = "casting"


class SessionListener:

    """Receives notifications about a `CastSession`.

    Notifications are delivered on the thread which called the session.
    """

    def session_changed(self, session):
        """Called after the session connected, disconnected or started
        casting."""

    def playback_state_changed(self, session):
        """Called after playback started or stopped."""


class CastSession:

    """A control session with one renderer.

    Example:

        >>> session = CastSession()
        >>> session.connect(device)
        >>> session.cast('http://192.168.1.2:8000/stream.mp3',
        ...              CastMetadata('Song', artist='Artist'))
        >>> session.set_volume(25)
        >>> session.stop()
        >>> session.disconnect()

    Every command raises `SessionNotActive` if no device is connected, and
    lets the errors of the `SoapClient` through unchanged.
    """

    def __init__(self, soap_client=None, listeners=None):
        """
        Args:
            soap_client (SoapClient): Sends the commands.
            listeners (Iterable[SessionListener]): Notified of changes.
        """
        self.soap_client = soap_client if soap_client is not None else SoapClient()
        self._listeners = list(listeners) if listeners is not None else []
        #: CastDevice: The connected device, or `None`.
        self.device = None
        #: str: One of ``"disconnected"``, ``"connected"`` or ``"casting"``.
        self.state = DISCONNECTED
        #: str: The URL being cast, or `None`.
        self.current_url = None
        #: CastMetadata: The metadata of what is being cast, or `None`.
        self.metadata = None

    def __repr__(self):
        return "<{} {} {!r}>".format(self.__class__.__name__, self.state, self.device)

    def add_listener(self, listener):
        """Register a `SessionListener`."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener):
        """Unregister a `SessionListener`."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, method_name):
        for listener in list(self._listeners):
            try:
                getattr(listener, method_name)(self)
            except Exception:  # pylint: disable=broad-except
                _LOG.exception("Session listener %r failed", listener)

    @property
    def is_active(self):
        """bool: Whether a device is connected."""
        return self.device is not None

    def _require_device(self):
        if self.device is None:
            raise SessionNotActive()
        return self.device

    def _av_transport(self, action, args):
        device = self._require_device()
        return self.soap_client.call(AV_TRANSPORT_SERVICE, device.control_url, action, args)

    def _rendering_control(self, action, args):
        device = self._require_device()
        return self.soap_client.call(
            RENDERING_CONTROL_SERVICE, device.rendering_control_url, action, args
        )

    def connect(self, device):
        """Connect to a device. No network traffic is involved.

        Raises:
            UnsupportedDevice: if the device cannot be controlled.
            ConnectionFailed: if the session is already connected.
        """
        if self.device is not None:
            raise ConnectionFailed(
                "session already connected to {}".format(self.device.name)
            )
        if not device.is_controllable:
            raise UnsupportedDevice()
        _LOG.info("Connecting to %s", device.name)
        self.device = device
        self.state = CONNECTED
        self._notify("session_changed")

    def disconnect(self):
        """Disconnect from the device, stopping playback first.

        A failure to stop is logged and otherwise ignored. Does nothing if
        no device is connected.
        """
        if self.device is None:
            return
        _LOG.info("Disconnecting from %s", self.device.name)
        if self.state == CASTING:
            try:
                self.stop()
            except CastException as error:
                _LOG.warning("Failed to stop playback on disconnect: %s", error)
        self.device = None
        self.state = DISCONNECTED
        self.current_url = None
        self.metadata = None
        self._notify("session_changed")

    def cast(self, url, metadata=None):
        """Play a URL on the device.

        Args:
            url (str): The URL of the media.
            metadata (CastMetadata or str): The metadata shown by the
                renderer. A `CastMetadata` is converted to DIDL-Lite, a
                string is sent as it is.
        """
        device = self._require_device()
        _LOG.info("Casting %s to %s", url, device.name)
        if isinstance(metadata, CastMetadata):
            didl = metadata.to_didl(url)
        else:
            didl = metadata or ""
        self._av_transport(
            "SetAVTransportURI",
            [("InstanceID", 0), ("CurrentURI", url), ("CurrentURIMetaData", didl)],
        )
        self._av_transport("Play", [("InstanceID", 0), ("Speed", 1)])
        self.state = CASTING
        self.current_url = url
        self.metadata = metadata
        self._notify("session_changed")
        self._notify("playback_state_changed")

    def stop(self):
        """Stop playback. Does nothing if no device is connected."""
        if self.device is None:
            return
        _LOG.info("Stopping playback on %s", self.device.name)
        self._av_transport("Stop", [("InstanceID", 0)])
        self.state = CONNECTED
        self.current_url = None
        self.metadata = None
        self._notify("playback_state_changed")

    def pause(self):
        """Pause playback."""
        self._av_transport("Pause", [("InstanceID", 0)])

    def resume(self):
        """Resume paused playback."""
        self._av_transport("Play", [("InstanceID", 0), ("Speed", 1)])

    def seek(self, seconds):
        """Seek to a position in the current track.

        Args:
            seconds (float): The position, in seconds from the start.
        """
        self._av_transport(
            "Seek",
            [("InstanceID", 0), ("Unit", "REL_TIME"), ("Target", format_time(seconds))],
        )

    def get_position_info(self):
        """Get the playback position.

        Returns:
            tuple: ``(position, duration)`` in seconds. Missing values are 0.
        """
        response = self._av_transport("GetPositionInfo", [("InstanceID", 0)])
        return (
            parse_time(response.get("RelTime")),
            parse_time(response.get("TrackDuration")),
        )

    def set_volume(self, volume):
        """Set the volume.

        Args:
            volume (int): The volume, clamped to the range 0 to 100.
        """
        volume = max(0, min(int(volume), 100))
        self._rendering_control(
            "SetVolume",
            [("InstanceID", 0), ("Channel", "Master"), ("DesiredVolume", volume)],
        )

    def get_volume(self):
        """Get the volume.

        Returns:
            int: The volume (0 to 100), or 0 if the renderer did not say.
        """
        response = self._rendering_control(
            "GetVolume", [("InstanceID", 0), ("Channel", "Master")]
        )
        try:
            return int(response.get("CurrentVolume"))
        except (TypeError, ValueError):
            return 0

    def set_mute(self, mute):
        """Mute or unmute the device.

        Args:
            mute (bool): `True` to mute.
        """
        self._rendering_control(
            "SetMute",
            [
                ("InstanceID", 0),
                ("Channel", "Master"),
                ("DesiredMute", "1" if mute else "0"),
            ],
        )
