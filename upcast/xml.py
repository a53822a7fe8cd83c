# pylint: disable=invalid-name,wrong-import-position,redefined-builtin

"""This module contains XML related utility functions."""


import sys
import re
from urllib.parse import urljoin
from xml.sax.saxutils import unescape

import xml.etree.ElementTree as XML


# Create regular expression for filtering invalid characters, from:
# http://stackoverflow.com/questions/1707890/
# fast-way-to-filter-illegal-xml-unicode-chars-in-python

illegal_unichrs = [
    (0x00, 0x08),
    (0x0B, 0x0C),
    (0x0E, 0x1F),
    (0x7F, 0x84),
    (0x86, 0x9F),
    (0xD800, 0xDFFF),
    (0xFDD0, 0xFDDF),
    (0xFFFE, 0xFFFF),
    (0x1FFFE, 0x1FFFF),
    (0x2FFFE, 0x2FFFF),
    (0x3FFFE, 0x3FFFF),
    (0x4FFFE, 0x4FFFF),
    (0x5FFFE, 0x5FFFF),
    (0x6FFFE, 0x6FFFF),
    (0x7FFFE, 0x7FFFF),
    (0x8FFFE, 0x8FFFF),
    (0x9FFFE, 0x9FFFF),
    (0xAFFFE, 0xAFFFF),
    (0xBFFFE, 0xBFFFF),
    (0xCFFFE, 0xCFFFF),
    (0xDFFFE, 0xDFFFF),
    (0xEFFFE, 0xEFFFF),
    (0xFFFFE, 0xFFFFF),
    (0x10FFFE, 0x10FFFF),
]

illegal_ranges = [
    "{}-{}".format(chr(low), chr(high))
    for (low, high) in illegal_unichrs
    if low < sys.maxunicode
]

illegal_xml_re = re.compile("[%s]" % "".join(illegal_ranges))

#: The UPnP service type whose control URL is needed for casting.
AV_TRANSPORT_SERVICE = "urn:schemas-upnp-org:service:AVTransport:1"

_AV_TRANSPORT_CONTROL_RE = re.compile(
    r"<serviceType>{}</serviceType>.*?<controlURL>([^<]*)</controlURL>".format(
        re.escape(AV_TRANSPORT_SERVICE)
    ),
    re.IGNORECASE | re.DOTALL,
)


def extract_value(xml_text, tag):
    """Return the text of the first ``<tag>...</tag>`` element in a string.

    Device description documents have a small and stable shape, so a
    targeted search is used instead of a full parse. Tag names are matched
    case-insensitively, the first match wins, and elements with child
    elements are not matched.

    Args:
        xml_text (str): The XML document, as unicode.
        tag (str): The tag name, without namespace prefix, eg
            ``"friendlyName"``.

    Returns:
        str: The unescaped text content, or `None` if the tag is not found.

    >>> extract_value('<root><UDN>uuid:abc</UDN></root>', 'udn')
    'uuid:abc'
    """
    match = re.search(
        r"<{0}>([^<]*)</{0}>".format(re.escape(tag)), xml_text, re.IGNORECASE
    )
    if match is None:
        return None
    return unescape(match.group(1), {"&quot;": '"', "&apos;": "'"})


def find_av_transport_control_url(xml_text, base_url):
    """Find the AVTransport control URL in a device description document.

    Args:
        xml_text (str): The device description document.
        base_url (str): The URL the document was fetched from. Relative
            control URLs are resolved against it.

    Returns:
        str: The absolute control URL, or `None` if the device does not
        expose an AVTransport service.
    """
    match = _AV_TRANSPORT_CONTROL_RE.search(xml_text)
    if match is None:
        return None
    control_path = match.group(1).strip()
    if not control_path:
        return None
    return urljoin(base_url, control_path)
