# pylint: disable=too-many-arguments

"""Classes for handling upcast's basic SOAP requirements.

This module does not handle anything like the full `SOAP Specification
<http://www.w3.org/TR/soap/>`_ , but is enough for controlling UPnP
renderers. Sonos speakers and DLNA TVs expose their AVTransport,
RenderingControl and ZoneGroupTopology services as SOAP 1.1 endpoints.

The `SoapClient` is a generic transport: it knows nothing about the actions
it sends, only how to wrap them, post them and retry them when a renderer
is temporarily unavailable.
"""

import logging
import time
from xml.sax.saxutils import escape

import requests

from . import config
from .exceptions import NetworkError, PlaybackFailed, UnknownXMLStructure
from .utils import prettify
from .xml import XML, illegal_xml_re

_LOG = logging.getLogger(__name__)

#: HTTP status codes worth retrying. 500 is returned by busy renderers, the
#: others by proxies and overloaded devices.
TRANSIENT_STATUS_CODES = frozenset((500, 502, 503, 504))

# From table 3.3 in
# http://upnp.org/specs/arch/UPnP-arch-DeviceArchitecture-v1.1.pdf
# Error codes between 700-799 are defined for particular services.
UPNP_ERRORS = {
    400: "Bad Request",
    401: "Invalid Action",
    402: "Invalid Args",
    404: "Invalid Var",
    412: "Precondition Failed",
    501: "Action Failed",
    600: "Argument Value Invalid",
    601: "Argument Value Out of Range",
    602: "Optional Action Not Implemented",
    603: "Out Of Memory",
    604: "Human Intervention Required",
    605: "String Argument Too Long",
    606: "Action Not Authorized",
    607: "Signature Failure",
    608: "Signature Missing",
    609: "Not Encrypted",
    610: "Invalid Sequence",
    611: "Invalid Control URL",
    612: "No Such Session",
    701: "Transition not available",
    702: "No contents",
    714: "Illegal MIME-type",
    716: "Resource not found",
}

# A complete request should look something like this:

# POST path of control URL HTTP/1.1
# HOST: host of control URL:port of control URL
# CONTENT-LENGTH: bytes in body
# CONTENT-TYPE: text/xml; charset="utf-8"
# SOAPACTION: "urn:schemas-upnp-org:service:serviceType:v#actionName"
#
# <?xml version="1.0"?>
# <s:Envelope
#   xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"
#   s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">
#   <s:Body>
#       <u:actionName
#           xmlns:u="urn:schemas-upnp-org:service:serviceType:v">
#           <argumentName>in arg value</argumentName>
#           ... other in args and their values go here, if any
#       </u:actionName>
#   </s:Body>
# </s:Envelope>

# pylint: disable=bad-continuation
SOAP_ENVELOPE_TEMPLATE = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"'
    ' s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
        "<s:Body>"
            '<u:{action} xmlns:u="{service_type}">'
                "{arguments}"
            "</u:{action}>"
        "</s:Body>"
    "</s:Envelope>"
)  # noqa PEP8


def wrap_arguments(args=None):
    """Wrap a list of tuples in xml ready to pass into a SOAP request.

    Args:
        args (list):  a list of (name, value) tuples specifying the
            name of each argument and its value, eg
            ``[('InstanceID', 0), ('Speed', 1)]``. The value
            can be a string or something with a string representation. The
            arguments are escaped and wrapped in <name> and <value> tags.

    Example:

        >>> print(wrap_arguments([('InstanceID', 0), ('Speed', 1)]))
        <InstanceID>0</InstanceID><Speed>1</Speed>
    """
    if args is None:
        args = []

    tags = []
    for name, value in args:
        tag = "<{name}>{value}</{name}>".format(
            name=name, value=escape("%s" % value, {'"': "&quot;", "'": "&apos;"})
        )
        tags.append(tag)

    return "".join(tags)


def build_envelope(service_type, action, args=None):
    """Build the SOAP envelope for an action.

    Args:
        service_type (str): The full UPnP service type, eg
            ``"urn:schemas-upnp-org:service:AVTransport:1"``.
        action (str): The name of the action.
        args (list, optional): Relevant arguments as a list of (name,
            value) tuples.

    Returns:
        str: The SOAP envelope, as unicode.
    """
    return SOAP_ENVELOPE_TEMPLATE.format(
        action=action, service_type=service_type, arguments=wrap_arguments(args)
    )


def unwrap_arguments(xml_response):
    """Extract arguments and their values from a SOAP response.

    Args:
        xml_response (str):  SOAP/xml response text (unicode,
            not utf-8).
    Returns:
         dict: a dict of ``{argument_name: value}`` items.

    Raises:
        UnknownXMLStructure: if the response is not a SOAP envelope.
    """
    xml_response = xml_response.encode("utf-8")
    try:
        try:
            tree = XML.fromstring(xml_response)
        except XML.ParseError:
            # Try to filter illegal xml chars (as unicode), in case that is
            # the reason for the parse error
            filtered = illegal_xml_re.sub("", xml_response.decode("utf-8")).encode(
                "utf-8"
            )
            tree = XML.fromstring(filtered)
    except XML.ParseError as error:
        raise UnknownXMLStructure("Unparsable SOAP response") from error

    body = tree.find("{http://schemas.xmlsoap.org/soap/envelope/}Body")
    if body is None or len(body) == 0:
        raise UnknownXMLStructure("SOAP response has no Body content")
    # Get the first child of the <Body> tag which will be
    # <{actionNameResponse}>. Turn the children of this into a
    # {tagname, content} dict. XML unescaping is carried out for us by
    # elementree.
    return {i.tag: i.text or "" for i in body[0]}


def parse_upnp_error(xml_error):
    """Extract the UPnP error code and description from a SOAP fault.

    An error response looks something like this::

        <s:Envelope ...>
          <s:Body>
            <s:Fault>
              <faultcode>s:Client</faultcode>
              <faultstring>UPnPError</faultstring>
              <detail>
                <UPnPError xmlns="urn:schemas-upnp-org:control-1-0">
                  <errorCode>error code</errorCode>
                  <errorDescription>error string</errorDescription>
                </UPnPError>
              </detail>
            </s:Fault>
          </s:Body>
        </s:Envelope>

    Args:
        xml_error (str): The body of the error response.

    Returns:
        tuple: ``(error_code, description)``, or ``(None, "")`` if the body
        is not a UPnP fault.
    """
    try:
        error = XML.fromstring(xml_error.encode("utf-8"))
    except XML.ParseError:
        return None, ""
    error_code = error.findtext(".//{urn:schemas-upnp-org:control-1-0}errorCode")
    if error_code is None:
        return None, ""
    error_code = error_code.strip()
    try:
        description = UPNP_ERRORS.get(int(error_code), "")
    except ValueError:
        description = ""
    return error_code, description


class SoapClient:

    """A SOAP client for UPnP service actions.

    Uses the `Requests <http://www.python-requests.org/en/latest/>`_ library
    for communication with the renderer. Transient failures (HTTP 500, 502,
    503, 504 and network errors) are retried with exponential backoff:

        >>> client = SoapClient()
        >>> client.invoke(
        ...     "urn:schemas-upnp-org:service:AVTransport:1",
        ...     "http://192.168.1.101:1400/MediaRenderer/AVTransport/Control",
        ...     "Pause",
        ...     [("InstanceID", 0)],
        ... )
    """

    def __init__(
        self, session=None, timeout=None, max_retries=None, retry_delay=None, sleep=None
    ):
        """
        Args:
            session (requests.Session): The session used to send requests.
                If `None`, the module level `requests.post` is used.
            timeout (float): The request timeout in seconds. Defaults to
                `config.REQUEST_TIMEOUT`.
            max_retries (int): Retries after a transient failure. Defaults
                to `config.SOAP_MAX_RETRIES`.
            retry_delay (float): The delay before the first retry. Defaults
                to `config.SOAP_RETRY_BASE_DELAY`.
            sleep (callable): Called with the backoff delay in seconds.
                Defaults to `time.sleep`.
        """
        self.session = session
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep if sleep is not None else time.sleep

    @staticmethod
    def prepare_headers(service_type, action):
        """Prepare the http headers for sending.

        Args:
            service_type (str): The full UPnP service type.
            action (str): The name of the action.

        Returns:
            dict: headers including the SOAPACTION header.
        """
        return {
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPACTION": '"{}#{}"'.format(service_type, action),
        }

    def _post(self, url, headers, data, timeout):
        poster = self.session.post if self.session is not None else requests.post
        return poster(url, headers=headers, data=data, timeout=timeout)

    def invoke(self, service_type, control_url, action, args=None):
        """Send an action to a UPnP service.

        Args:
            service_type (str): The full UPnP service type, eg
                ``"urn:schemas-upnp-org:service:AVTransport:1"``.
            control_url (str): The absolute control URL of the service.
            action (str): The name of the action, eg ``"Play"``.
            args (list, optional): Relevant arguments as an ordered list of
                (name, value) tuples.

        Returns:
            str: The body of the response, as unicode.

        Raises:
            PlaybackFailed: if the renderer returns an HTTP error, or a
                transient HTTP error persists after all retries.
            NetworkError: if the renderer cannot be reached.
        """
        headers = self.prepare_headers(service_type, action)
        body = build_envelope(service_type, action, args)
        data = body.encode("utf-8")
        timeout = self.timeout if self.timeout is not None else config.REQUEST_TIMEOUT
        max_retries = (
            self.max_retries if self.max_retries is not None else config.SOAP_MAX_RETRIES
        )
        retry_delay = (
            self.retry_delay
            if self.retry_delay is not None
            else config.SOAP_RETRY_BASE_DELAY
        )

        _LOG.debug("Sending %s %s to %s", action, args, control_url)
        # Check log level before logging XML, since prettifying it is
        # expensive
        if _LOG.isEnabledFor(logging.DEBUG):
            _LOG.debug("Sending %s, %s", headers, prettify(body))

        last_error = None
        for attempt in range(max_retries + 1):
            if attempt > 0:
                delay = retry_delay * (2 ** (attempt - 1))
                _LOG.info(
                    "Retrying %s (attempt %d/%d) after %.1fs",
                    action,
                    attempt + 1,
                    max_retries + 1,
                    delay,
                )
                self._sleep(delay)

            try:
                response = self._post(control_url, headers, data, timeout)
            except (
                requests.exceptions.ConnectionError,
                requests.exceptions.Timeout,
            ) as error:
                _LOG.info("%s to %s failed: %s", action, control_url, error)
                last_error = NetworkError(error)
                continue
            except requests.exceptions.RequestException as error:
                raise NetworkError(error) from error

            status = response.status_code
            _LOG.debug("Received status %s from %s", status, control_url)
            if status < 400:
                if attempt > 0:
                    _LOG.info("%s succeeded on attempt %d", action, attempt + 1)
                _LOG.debug("Received %s, %s", response.headers, response.text)
                return response.text

            error_code, description = parse_upnp_error(response.text)
            last_error = PlaybackFailed(
                "SOAP error {}".format(status),
                status_code=status,
                error_code=error_code,
                error_description=description,
            )
            if status not in TRANSIENT_STATUS_CODES:
                _LOG.warning(
                    "%s to %s failed with HTTP %s: %s",
                    action,
                    control_url,
                    status,
                    response.text,
                )
                raise last_error
            _LOG.info("%s got transient HTTP %s from %s", action, status, control_url)

        _LOG.warning(
            "%s to %s failed after %d attempts: %s",
            action,
            control_url,
            max_retries + 1,
            last_error,
        )
        if isinstance(last_error, NetworkError):
            raise NetworkError(last_error.cause) from last_error.cause
        raise PlaybackFailed(
            "{} after {} attempts".format(last_error.reason, max_retries + 1),
            status_code=last_error.status_code,
            error_code=last_error.error_code,
            error_description=last_error.error_description,
        ) from last_error

    def call(self, service_type, control_url, action, args=None):
        """Send an action and return its output arguments.

        Same as `invoke`, but the response is unwrapped.

        Returns:
             dict: a dict of ``{argument_name: value}`` items. An empty dict is
             a valid result. It just means that no values are returned.

        Raises:
            PlaybackFailed: as for `invoke`, and if the response cannot be
                parsed.
            NetworkError: as for `invoke`.
        """
        response = self.invoke(service_type, control_url, action, args)
        try:
            return unwrap_arguments(response)
        except UnknownXMLStructure as error:
            raise PlaybackFailed(
                "Unparsable response to {}".format(action)
            ) from error
