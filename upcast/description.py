"""This module contains the fetching and classification of device
description documents.

Both discovery channels report the URL of a device description document.
The `DescriptionFetcher` fetches each URL at most once per discovery session,
parses the document and decides what the device is:

1. devices of an excluded manufacturer (NAS boxes, routers, lighting hubs)
   are dropped,
2. Sonos zone players are handed to the `TopologyResolver`, which turns them
   into group aware devices once the household has settled,
3. other devices without an AVTransport service are dropped,
4. devices made by a TV vendor, or calling themselves a TV, are added to the
   registry as DLNA renderers. Anything else is dropped.
"""

import logging
import threading
import uuid
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor
from urllib.parse import urlparse

import requests

from . import config
from .devices import DLNA_RENDERER, CastDevice
from .groups import SonosZoneInfo
from .xml import extract_value, find_av_transport_control_url

_LOG = logging.getLogger(__name__)

# Results of `classify`
EXCLUDED = "excluded"
SONOS_ZONE = "sonosZone"
RENDERER = DLNA_RENDERER
NO_TRANSPORT = "noTransport"
UNKNOWN = "unknown"

SONOS_DEFAULT_PORT = 1400


class DeviceDescription(
    namedtuple(
        "DeviceDescriptionBase",
        "friendly_name, manufacturer, model_name, udn, room_name, control_url, "
        "location",
    )
):
    """The parts of a device description document that matter for casting.

    ``manufacturer`` is an empty string if the document has none, and
    ``model_name``, ``room_name`` and ``control_url`` may be `None`.
    """

    @property
    def host(self):
        """str: The host name of the description URL."""
        return urlparse(self.location).hostname

    def port(self, default=80):
        """Return the port of the description URL, or ``default``."""
        return urlparse(self.location).port or default


def parse_description(text, location):
    """Parse a device description document.

    Args:
        text (str): The document.
        location (str): The URL the document was fetched from.

    Returns:
        DeviceDescription: The parsed description. A missing friendly name
        becomes ``"Unknown Device"`` and a missing UDN a random UUID.
    """
    friendly_name = extract_value(text, "friendlyName") or "Unknown Device"
    udn = extract_value(text, "UDN") or str(uuid.uuid4())
    return DeviceDescription(
        friendly_name=friendly_name,
        manufacturer=extract_value(text, "manufacturer") or "",
        model_name=extract_value(text, "modelName"),
        udn=udn,
        room_name=extract_value(text, "roomName"),
        control_url=find_av_transport_control_url(text, location),
        location=location,
    )


def _matches_any(value, fragments):
    return any(fragment in value for fragment in fragments)


def classify(description):
    """Decide what kind of device a description belongs to.

    Returns:
        str: One of `EXCLUDED`, `SONOS_ZONE`, `RENDERER`, `NO_TRANSPORT` or
        `UNKNOWN`. Only `SONOS_ZONE` and `RENDERER` devices are kept.
    """
    manufacturer = description.manufacturer.lower()
    if _matches_any(manufacturer, config.EXCLUDED_MANUFACTURERS):
        return EXCLUDED
    if _matches_any(manufacturer, config.SONOS_MANUFACTURERS):
        return SONOS_ZONE
    if not description.control_url:
        return NO_TRANSPORT
    if _matches_any(manufacturer, config.TV_MANUFACTURERS):
        return RENDERER
    model = (description.model_name or "").lower()
    name = description.friendly_name.lower()
    for text in (model, name):
        if "tv" in text or "television" in text:
            return RENDERER
    return UNKNOWN


def zone_from_description(description):
    """Return the `SonosZoneInfo` for a Sonos description."""
    return SonosZoneInfo(
        udn=description.udn,
        room_name=description.room_name or description.friendly_name,
        address=description.host,
        port=description.port(SONOS_DEFAULT_PORT),
        control_url=description.control_url,
        description_url=description.location,
    )


def renderer_from_description(description):
    """Return the `CastDevice` for a DLNA renderer description."""
    return CastDevice(
        id=description.udn,
        name=description.friendly_name,
        device_type=DLNA_RENDERER,
        address=description.host,
        port=description.port(),
        manufacturer=description.manufacturer,
        model_name=description.model_name,
        control_url=description.control_url,
        description_url=description.location,
    )


class DescriptionFetcher:

    """Fetches description documents and routes the devices they describe.

    `fetch` can be called from any thread. The HTTP requests run on a
    thread pool, and all bookkeeping (which URLs are pending or resolved,
    which fetches are in flight) is kept in the `DeviceRegistry`, so that a
    registry reset cancels everything in progress.
    """

    def __init__(self, registry, resolver, session=None, executor=None, timeout=None):
        """
        Args:
            registry (DeviceRegistry): Where renderers are added.
            resolver (TopologyResolver): Where Sonos zones are sent.
            session (requests.Session): Used for the GET requests. If
                `None`, the module level `requests.get` is used.
            executor (concurrent.futures.Executor): Runs the fetches.
                Defaults to a private thread pool.
            timeout (float): The request timeout. Defaults to
                `config.DESCRIPTION_TIMEOUT`.
        """
        self.registry = registry
        self.resolver = resolver
        self.session = session
        self.timeout = timeout
        self._executor = executor
        self._lock = threading.Lock()

    def _get_executor(self):
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=8, thread_name_prefix="upcast-description"
                )
            return self._executor

    def fetch(self, location):
        """Fetch and handle the description at ``location``.

        Does nothing if the URL is pending or was already resolved in this
        discovery session.

        Returns:
            concurrent.futures.Future: The running fetch, or `None` if it
            was skipped.
        """
        generation = self.registry.claim_location(location)
        if generation is None:
            return None
        _LOG.debug("Found device at %s", location)
        try:
            future = self._get_executor().submit(self._fetch, location, generation)
        except RuntimeError:
            # The executor has been shut down
            self.registry.finish_location(location, generation, resolved=False)
            return None
        self.registry.track_fetch(location, future, generation)
        return future

    def shutdown(self):
        """Shut down the private thread pool, if one was created."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)

    def _get(self, location):
        timeout = self.timeout if self.timeout is not None else config.DESCRIPTION_TIMEOUT
        getter = self.session.get if self.session is not None else requests.get
        response = getter(location, timeout=timeout)
        response.raise_for_status()
        return response.content.decode("utf-8", errors="replace")

    def _fetch(self, location, generation):
        try:
            text = self._get(location)
        except requests.exceptions.RequestException as error:
            _LOG.info("Failed to fetch description %s: %s", location, error)
            self.registry.finish_location(location, generation, resolved=False)
            return None
        if not self.registry.finish_location(location, generation, resolved=True):
            _LOG.debug("Discarding stale description %s", location)
            return None
        try:
            return self.handle_description(
                parse_description(text, location), generation
            )
        except Exception:  # pylint: disable=broad-except
            _LOG.exception("Failed to handle description %s", location)
            return None

    def handle_description(self, description, generation):
        """Classify a parsed description and route the device.

        Returns:
            str: The classification, see `classify`.
        """
        kind = classify(description)
        if kind == EXCLUDED:
            _LOG.info(
                "Skipping non-castable device: %s (%s)",
                description.friendly_name,
                description.manufacturer,
            )
        elif kind == SONOS_ZONE:
            self.resolver.zone_discovered(zone_from_description(description), generation)
        elif kind == RENDERER:
            self.registry.add(renderer_from_description(description), generation)
        elif kind == NO_TRANSPORT:
            _LOG.info(
                "Skipping device without AVTransport: %s (%s)",
                description.friendly_name,
                description.manufacturer,
            )
        else:
            _LOG.info(
                "Skipping unknown device type: %s (%s)",
                description.friendly_name,
                description.manufacturer,
            )
        return kind
