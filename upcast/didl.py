"""This module contains the metadata sent to a renderer with a stream.

Renderers show the title, artist and artwork of what is playing from the
DIDL-Lite document passed to ``SetAVTransportURI``. It looks like this::

    <DIDL-Lite xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/">
      <item id="1" parentID="0" restricted="1">
        <dc:title>Song</dc:title>
        <dc:creator>Artist</dc:creator>
        <upnp:artist>Artist</upnp:artist>
        <upnp:album>Album</upnp:album>
        <upnp:class>object.item.audioItem.musicTrack</upnp:class>
        <res protocolInfo="http-get:*:audio/mpeg:*"
         duration="00:03:25">http://192.168.1.2:8000/stream.mp3</res>
      </item>
    </DIDL-Lite>
"""

from .utils import format_time
from .xml import XML

MUSIC_TRACK_CLASS = "object.item.audioItem.musicTrack"


# pylint: disable=too-many-arguments
class CastMetadata:

    """Describes the media being cast."""

    def __init__(
        self,
        title,
        artist=None,
        album=None,
        artwork_url=None,
        duration=None,
        content_type="audio/mpeg",
    ):
        """
        Args:
            title (str): The title of the track.
            artist (str, optional): The artist.
            album (str, optional): The album.
            artwork_url (str, optional): The URL of the album art.
            duration (float, optional): The duration in seconds.
            content_type (str): The MIME type of the stream. Defaults to
                ``"audio/mpeg"``.
        """
        self.title = title
        self.artist = artist
        self.album = album
        self.artwork_url = artwork_url
        self.duration = duration
        self.content_type = content_type

    def __repr__(self):
        return "<{} '{}' at {}>".format(
            self.__class__.__name__, self.title, hex(id(self))
        )

    def to_element(self, stream_url):
        """Return an ElementTree Element for the ``item`` of this track.

        Returns:
            ~xml.etree.ElementTree.Element: an Element.
        """
        artist = self.artist or "Unknown Artist"
        elt = XML.Element("item", {"id": "1", "parentID": "0", "restricted": "1"})
        # The title should always come first
        XML.SubElement(elt, "dc:title").text = self.title
        XML.SubElement(elt, "dc:creator").text = artist
        XML.SubElement(elt, "upnp:artist").text = artist
        XML.SubElement(elt, "upnp:album").text = self.album or "Unknown Album"
        XML.SubElement(elt, "upnp:class").text = MUSIC_TRACK_CLASS
        res = XML.SubElement(
            elt,
            "res",
            {
                "protocolInfo": "http-get:*:{}:*".format(self.content_type),
                "duration": format_time(self.duration or 0),
            },
        )
        res.text = stream_url
        if self.artwork_url:
            XML.SubElement(elt, "upnp:albumArtURI").text = self.artwork_url
        return elt

    def to_didl(self, stream_url):
        """Return the DIDL-Lite document for this track.

        Args:
            stream_url (str): The URL the renderer will play.

        Returns:
            str: A unicode string representation of DIDL-Lite XML in the form
            ``'<DIDL-Lite ...>...</DIDL-Lite>'``.
        """
        didl = XML.Element(
            "DIDL-Lite",
            {
                "xmlns": "urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/",
                "xmlns:dc": "http://purl.org/dc/elements/1.1/",
                "xmlns:upnp": "urn:schemas-upnp-org:metadata-1-0/upnp/",
            },
        )
        didl.append(self.to_element(stream_url))
        return XML.tostring(didl, encoding="unicode")
